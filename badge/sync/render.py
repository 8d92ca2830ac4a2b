from __future__ import annotations

from lxml import etree

from .config import COUNT_ATTRIBUTE, SyncConfig
from .page import compile_selector

DEFAULT_CONFIG = SyncConfig()


def find_badges(document, config: SyncConfig = DEFAULT_CONFIG) -> list:
    return compile_selector(config.badge_selector)(document)


def is_cart_anchor(anchor) -> bool:
    href = (anchor.get("href") or "").lower()
    return "cart" in href or "cart" in anchor.text_content().lower()


def find_cart_anchors(document) -> list:
    return [a for a in document.iter("a") if is_cart_anchor(a)]


def _append_badge(anchor, count: int, config: SyncConfig):
    # one space between the link text and the badge
    if len(anchor):
        last = anchor[-1]
        last.tail = (last.tail or "") + " "
    else:
        anchor.text = (anchor.text or "") + " "
    badge = etree.SubElement(anchor, "span")
    badge.set("class", config.badge_class)
    badge.set(COUNT_ATTRIBUTE, str(count))
    badge.text = str(count)
    return badge


def _remove_badge(badge) -> None:
    # take back the space _append_badge put before it
    previous = badge.getprevious()
    if previous is not None:
        if previous.tail and previous.tail.endswith(" "):
            previous.tail = previous.tail[:-1]
    else:
        parent = badge.getparent()
        if parent is not None and parent.text and parent.text.endswith(" "):
            parent.text = parent.text[:-1]
    badge.drop_tree()


def _set_count(badge, count: int) -> None:
    for child in list(badge):
        badge.remove(child)
    badge.text = str(count)
    badge.set(COUNT_ATTRIBUTE, str(count))


def render_badge(document, count: int, config: SyncConfig = DEFAULT_CONFIG) -> list:
    """
    Bring the badge in `document` in line with `count`.

    Existing badges are updated in place; new ones are only created when none
    exist yet, one per cart anchor. A zero count removes every badge.
    Returns the badge elements left in the document.
    """
    count = max(int(count), 0)
    badges = find_badges(document, config)

    if count == 0:
        for badge in badges:
            _remove_badge(badge)
        return []

    if badges:
        for badge in badges:
            _set_count(badge, count)
        return badges

    return [_append_badge(anchor, count, config) for anchor in find_cart_anchors(document)]
