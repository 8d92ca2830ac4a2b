from django.conf import settings
from django.core.checks import Error, Warning, register
from django.utils.module_loading import import_string

from .conf import get_badge_settings
from .sync.config import BADGE_SELECTOR_CLASS

CONTEXT_PROCESSOR = "badge.context_processors.cart_badge"


@register("cart_badge")
def check_count_provider(app_configs, **kwargs):
    path = get_badge_settings().count_provider
    try:
        import_string(path)
    except ImportError as exc:
        return [Error(
            f"CART_BADGE_COUNT_PROVIDER {path!r} cannot be imported: {exc}",
            hint="Point it at a callable(request) -> int that reads your cart store.",
            id="badge.E001",
        )]
    return []


@register("cart_badge")
def check_badge_class(app_configs, **kwargs):
    classes = get_badge_settings().badge_class.split()
    if BADGE_SELECTOR_CLASS not in classes:
        return [Warning(
            f"CART_BADGE_CLASS does not include {BADGE_SELECTOR_CLASS!r}; "
            "live updates will not find the server-rendered badge.",
            id="badge.W001",
        )]
    return []


@register("cart_badge")
def check_context_processor(app_configs, **kwargs):
    for backend in getattr(settings, "TEMPLATES", []):
        if CONTEXT_PROCESSOR in backend.get("OPTIONS", {}).get("context_processors", []):
            return []
    return [Warning(
        f"{CONTEXT_PROCESSOR!r} is not in TEMPLATES context_processors; "
        "pages will not expose the badge endpoint configuration.",
        id="badge.W002",
    )]
