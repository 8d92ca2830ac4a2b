from __future__ import annotations

from dataclasses import dataclass

BADGE_SELECTOR_CLASS = "cart-quantity-badge"
DEFAULT_BADGE_CLASS = f"uk-badge {BADGE_SELECTOR_CLASS}"
COUNT_ATTRIBUTE = "data-cart-count"
DEFAULT_ACTION = "get_cart_quantity"
CONFIG_ELEMENT_ID = "cart-badge-config"
UPDATED_EVENT = "cart_badge_updated"


@dataclass(frozen=True)
class SyncConfig:
    """Timings (seconds) and selectors used by the reconciliation loop.

    Defaults follow the block-based cart and checkout widgets. Every field
    can be overridden for themes that render different markup.
    """

    debounce: float = 0.3
    fetch_settle: float = 0.5
    remove_settle: float = 0.8
    stepper_settle: float = 0.4

    badge_class: str = DEFAULT_BADGE_CLASS
    updated_event: str = UPDATED_EVENT

    cart_events: tuple[str, ...] = (
        "updated_wc_div",
        "updated_cart_totals",
        "added_to_cart",
        "removed_from_cart",
        "wc_cart_loaded",
    )
    api_url_markers: tuple[str, ...] = ("/wc/store/", "/api/cart/")

    container_selector: str = (
        ".wp-block-woocommerce-cart, .wp-block-woocommerce-checkout, "
        ".wc-block-cart, .wc-block-checkout"
    )
    observed_attributes: tuple[str, ...] = ("class", "data-quantity")
    totals_classes: tuple[str, ...] = ("wc-block-cart__totals", "wc-block-checkout__totals")
    item_container_selector: str = (
        ".wc-block-cart-item, .wc-block-cart-items, .wc-block-checkout-order-summary"
    )
    price_pattern: str = r"\$[\d,]+\.?\d*"

    quantity_input_selector: str = (
        ".wc-block-cart-item__quantity input, "
        ".wc-block-components-quantity-selector input, "
        'input[name*="quantity"]'
    )
    remove_selector: str = ".wc-block-cart-item__remove-link, .remove"
    stepper_selector: str = ".wc-block-components-quantity-selector__button"

    @property
    def badge_selector(self) -> str:
        return f".{BADGE_SELECTOR_CLASS}"
