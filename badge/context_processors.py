import logging

from django.middleware.csrf import get_token
from django.urls import reverse

from .conf import get_badge_settings
from .services.counts import CartStoreUnavailable, get_cart_count

logger = logging.getLogger(__name__)


def badge_client_config(request):
    """Values the page script needs to query the count endpoint."""
    badge_settings = get_badge_settings()
    return {
        "ajaxurl": reverse("cart_badge_count"),
        "nonce": get_token(request),
        "action": badge_settings.action,
        "badge_class": badge_settings.badge_class,
    }


def cart_badge(request):
    count = 0
    try:
        count = get_cart_count(request)
    except CartStoreUnavailable as exc:
        logger.warning("Cart badge count unavailable while rendering: %s", exc)
    return {
        "cart_count": count,
        "cart_badge_config": badge_client_config(request),
    }
