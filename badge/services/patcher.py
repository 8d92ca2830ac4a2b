"""
Server-side badge injection for rendered navigation markup.

The navigation fragment comes from templates we do not control, so the cart
link is located with ordered fallbacks:

1. an anchor whose text mentions "Cart",
2. an anchor whose href mentions "cart".

The first pattern that finds an anchor wins and only the first matching anchor
is patched. Anything unexpected leaves the fragment untouched.
"""
import logging
import re

from django.utils.html import format_html

from ..sync.config import BADGE_SELECTOR_CLASS, COUNT_ATTRIBUTE, DEFAULT_BADGE_CLASS

logger = logging.getLogger(__name__)

ANCHOR_RE = re.compile(r"<a\b[^>]*>.*?</a\s*>", re.IGNORECASE | re.DOTALL)
OPEN_TAG_RE = re.compile(r"<a\b[^>]*>", re.IGNORECASE)
HREF_RE = re.compile(r"""(?<![\w-])href\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))""", re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]*>")
BADGE_RE = re.compile(
    r"<span\b[^>]*\bclass\s*=\s*[\"'][^\"']*\b" + re.escape(BADGE_SELECTOR_CLASS) + r"\b[^>]*>.*?</span\s*>",
    re.IGNORECASE | re.DOTALL,
)


def badge_html(count, badge_class=DEFAULT_BADGE_CLASS):
    return format_html(
        '<span class="{}" ' + COUNT_ATTRIBUTE + '="{}">{}</span>',
        badge_class, count, count,
    )


def _inner_text(anchor):
    opening = OPEN_TAG_RE.match(anchor)
    body = anchor[opening.end():] if opening else anchor
    return TAG_RE.sub("", body)


def _text_mentions_cart(anchor):
    return "cart" in _inner_text(anchor).lower()


def _href_mentions_cart(anchor):
    opening = OPEN_TAG_RE.match(anchor)
    if not opening:
        return False
    href = HREF_RE.search(opening.group(0))
    if not href:
        return False
    value = next(g for g in href.groups() if g is not None)
    return "cart" in value.lower()


PATTERNS = (_text_mentions_cart, _href_mentions_cart)


def find_cart_anchor(fragment):
    """Return the regex match of the cart anchor, or None."""
    anchors = list(ANCHOR_RE.finditer(fragment))
    for matches_cart in PATTERNS:
        for m in anchors:
            if matches_cart(m.group(0)):
                return m
    return None


def patch(fragment, cart_count, badge_class=DEFAULT_BADGE_CLASS):
    """
    Insert (or refresh) the count badge inside the cart anchor of `fragment`.

    Returns `fragment` itself when the count is not positive, when no cart
    anchor is found, or when the input is not a usable string.
    """
    if not isinstance(fragment, str) or not fragment:
        return fragment
    try:
        count = int(cart_count)
    except (TypeError, ValueError):
        return fragment
    if count <= 0:
        return fragment

    match = find_cart_anchor(fragment)
    if match is None:
        return fragment

    anchor = match.group(0)
    badge = badge_html(count, badge_class)
    if BADGE_RE.search(anchor):
        patched = BADGE_RE.sub(lambda _m: badge, anchor, count=1)
    else:
        close_at = anchor.rfind("</")
        patched = f"{anchor[:close_at]} {badge}{anchor[close_at:]}"

    logger.debug("Cart badge injected with count=%s", count)
    return fragment[:match.start()] + patched + fragment[match.end():]
