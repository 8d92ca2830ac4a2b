"""
Headless model of a delivered page.

`Page` wraps an lxml document together with the hooks the badge loop listens
to: a custom event bus, delegated DOM listeners, an observable `fetch` and a
mutation-observer registry. Hosts (a browser bridge, a test, a crawler) drive
it by calling `trigger`, `dispatch`, `fetch` and `record_mutations`.
"""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Awaitable, Callable, Optional

import lxml.html
from lxml.cssselect import CSSSelector

from .config import CONFIG_ELEMENT_ID

logger = logging.getLogger(__name__)

Transport = Callable[..., Awaitable[Any]]


@lru_cache(maxsize=128)
def compile_selector(selector: str) -> CSSSelector:
    return CSSSelector(selector, translator="html")


def closest(element, selector: str, root=None):
    """Nearest element, starting at `element` itself, that matches `selector`."""
    if root is None:
        root = element.getroottree().getroot()
    matched = set(compile_selector(selector)(root))
    node = element
    while node is not None:
        if node in matched:
            return node
        node = node.getparent()
    return None


def contains(ancestor, element) -> bool:
    node = element
    while node is not None:
        if node is ancestor:
            return True
        node = node.getparent()
    return False


@dataclass
class MutationRecord:
    type: str  # "childList" | "attributes" | "characterData"
    target: Any
    attribute_name: Optional[str] = None


@dataclass(eq=False)
class Observation:
    element: Any
    callback: Callable[[list], None]
    attribute_filter: Optional[tuple] = None

    def accepts(self, record: MutationRecord) -> bool:
        if not contains(self.element, record.target):
            return False
        if record.type == "attributes" and self.attribute_filter is not None:
            return record.attribute_name in self.attribute_filter
        return True


class Page:
    def __init__(self, document, config: Optional[dict] = None, transport: Optional[Transport] = None):
        self.document = document
        self.config = dict(config or {})
        self._transport = transport
        self._listeners: dict[str, list] = defaultdict(list)
        self._delegates: list[tuple[str, str, Callable]] = []
        self._fetch_listeners: list[Callable] = []
        self._observations: list[Observation] = []

    @classmethod
    def from_html(cls, html, transport: Optional[Transport] = None, config_element_id: str = CONFIG_ELEMENT_ID):
        """Parse a full page and pick up the badge configuration embedded in it."""
        document = lxml.html.document_fromstring(html)
        config = {}
        nodes = document.xpath("//script[@id=$id]", id=config_element_id)
        if nodes:
            try:
                config = json.loads(nodes[0].text or "{}")
            except ValueError:
                logger.warning("Ignoring malformed badge configuration in #%s", config_element_id)
        return cls(document, config=config, transport=transport)

    def select(self, selector: str) -> list:
        return compile_selector(selector)(self.document)

    # custom events

    def on(self, names: str, handler: Callable) -> None:
        for name in names.split():
            self._listeners[name].append(handler)

    def off(self, names: str, handler: Callable) -> None:
        for name in names.split():
            if handler in self._listeners[name]:
                self._listeners[name].remove(handler)

    def trigger(self, name: str, *args) -> None:
        for handler in list(self._listeners[name]):
            handler(*args)

    # DOM events

    def delegate(self, event_types: str, selector: str, handler: Callable) -> None:
        for event_type in event_types.split():
            self._delegates.append((event_type, selector, handler))

    def undelegate(self, handler: Callable) -> None:
        self._delegates = [d for d in self._delegates if d[2] != handler]

    def dispatch(self, event_type: str, target) -> None:
        """Fire a bubbling DOM event at `target`; delegated handlers get the matched element."""
        for registered_type, selector, handler in list(self._delegates):
            if registered_type != event_type:
                continue
            matched = closest(target, selector, root=self.document)
            if matched is not None:
                handler(event_type, matched)

    # network

    def add_fetch_listener(self, listener: Callable) -> None:
        self._fetch_listeners.append(listener)

    def remove_fetch_listener(self, listener: Callable) -> None:
        if listener in self._fetch_listeners:
            self._fetch_listeners.remove(listener)

    async def fetch(self, url: str, **kwargs):
        """Issue a page request; listeners hear about it once it completes successfully."""
        if self._transport is None:
            raise RuntimeError("Page has no network transport")
        response = await self._transport(url, **kwargs)
        for listener in list(self._fetch_listeners):
            listener(url, response)
        return response

    # mutations

    def observe(self, element, callback: Callable[[list], None], attribute_filter=None) -> Observation:
        observation = Observation(element, callback, tuple(attribute_filter) if attribute_filter else None)
        self._observations.append(observation)
        return observation

    def disconnect(self, observation: Observation) -> None:
        if observation in self._observations:
            self._observations.remove(observation)

    def record_mutations(self, records: list) -> None:
        for observation in list(self._observations):
            relevant = [r for r in records if observation.accepts(r)]
            if relevant:
                observation.callback(relevant)
