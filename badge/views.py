import logging
from collections.abc import Mapping

from django.conf import settings
from rest_framework import permissions, status
from rest_framework.authentication import CSRFCheck, SessionAuthentication
from rest_framework.exceptions import ParseError
from rest_framework.response import Response
from rest_framework.views import APIView

from .conf import get_badge_settings
from .services.counts import CartStoreUnavailable, get_cart_count

logger = logging.getLogger(__name__)


class SessionNoCsrfAuthentication(SessionAuthentication):
    """Session auth whose CSRF check is done by the view for every caller."""

    def enforce_csrf(self, request):
        return


def _csrf_failure(request, nonce=None):
    """
    Run Django's CSRF validation and return the rejection reason, if any.

    A posted `nonce` stands in for the X-CSRFToken header; when both are sent
    they must agree.
    """
    if nonce is not None:
        header = request.META.get(settings.CSRF_HEADER_NAME)
        if not isinstance(nonce, str) or (header is not None and header != nonce):
            return "nonce does not match the CSRF token header."
        request.META.setdefault(settings.CSRF_HEADER_NAME, nonce)

    def dummy_get_response(request):  # pragma: no cover
        return None

    check = CSRFCheck(dummy_get_response)
    check.process_request(request)
    return check.process_view(request, None, (), {})


def _fail(reason, http_status):
    return Response({"success": False, "data": reason}, status=http_status)


class CartCountView(APIView):
    """
    POST {action, nonce} -> {"success": true, "data": <count>}.

    Failures answer {"success": false, "data": <reason>} so the page script can
    log and carry on.
    """

    authentication_classes = [SessionNoCsrfAuthentication]
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        try:
            data = request.data
        except ParseError as exc:
            logger.warning("Cart count request rejected: %s", exc.detail)
            return _fail("Malformed request.", status.HTTP_400_BAD_REQUEST)
        if not isinstance(data, Mapping):
            data = {}

        reason = _csrf_failure(request._request, data.get("nonce"))
        if reason:
            logger.warning("Cart count request rejected: %s", reason)
            return _fail("Invalid security token.", status.HTTP_403_FORBIDDEN)

        expected = get_badge_settings().action
        action = data.get("action")
        if action != expected:
            logger.warning("Cart count request rejected: unknown action %r", action)
            return _fail("Unknown action.", status.HTTP_400_BAD_REQUEST)

        try:
            count = get_cart_count(request)
        except CartStoreUnavailable as exc:
            logger.error("Cart count not available: %s", exc)
            return _fail("Cart not available.", status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response({"success": True, "data": count})
