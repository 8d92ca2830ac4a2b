import logging

from django.utils.module_loading import import_string

from ..conf import get_badge_settings

logger = logging.getLogger(__name__)


class CartStoreUnavailable(Exception):
    """The configured cart store could not produce a count."""


def session_cart_count(session):
    """Sum quantities of the anonymous cart kept in the session."""
    cart = session.get("cart", {}) if session is not None else {}
    total_items = 0
    if not isinstance(cart, dict):
        return 0
    for item in cart.values():
        if isinstance(item, dict):
            total_items += int(item.get("quantity", 0) or 0)
        elif isinstance(item, int) and not isinstance(item, bool):
            total_items += item  # plain int is the quantity
    return max(total_items, 0)


def cart_contents_count(request):
    """Default provider: the user's Cart rows, or the session cart for visitors."""
    from ..models import Cart

    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        try:
            return Cart.objects.get(user=user).item_count()
        except Cart.DoesNotExist:
            return 0
    return session_cart_count(getattr(request, "session", None))


def get_count_provider():
    path = get_badge_settings().count_provider
    try:
        return import_string(path)
    except ImportError as exc:
        raise CartStoreUnavailable(f"Cart store provider {path!r} is not importable") from exc


def get_cart_count(request):
    """Live item count for `request`. Raises CartStoreUnavailable on any store fault."""
    provider = get_count_provider()
    try:
        count = int(provider(request))
    except CartStoreUnavailable:
        raise
    except Exception as exc:
        logger.exception("Cart store provider failed")
        raise CartStoreUnavailable("Cart store failed to return a count") from exc
    return max(count, 0)
