"""
Keeps the cart badge of a live page in step with the cart.

Anything that may have changed the cart (cart events, cart API calls, cart
widget re-renders, quantity and remove controls) asks for an update. Requests
are debounced: each one replaces the pending timer, so a burst of activity ends
in a single count query once the page goes quiet. Updates that fail are logged
and dropped; the next trigger tries again.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from .client import CountClient, CountUnavailable
from .config import DEFAULT_BADGE_CLASS, SyncConfig
from .page import Page, closest
from .render import render_badge

logger = logging.getLogger(__name__)

IDLE = "idle"
SCHEDULED = "scheduled"


class BadgeSync:
    def __init__(self, page: Page, client, config: Optional[SyncConfig] = None):
        self.page = page
        self.client = client
        self.config = config or SyncConfig()
        self._price_re = re.compile(self.config.price_pattern)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set = set()
        self._observations: list = []
        self._started = False

    @classmethod
    def for_page(cls, page: Page, config: Optional[SyncConfig] = None, **client_kwargs) -> "BadgeSync":
        """Build the loop with a CountClient configured from the page's embedded settings."""
        if config is None:
            config = SyncConfig(badge_class=page.config.get("badge_class") or DEFAULT_BADGE_CLASS)
        return cls(page, CountClient.from_config(page.config, **client_kwargs), config)

    @property
    def state(self) -> str:
        return SCHEDULED if self._timer is not None else IDLE

    def start(self) -> None:
        """Subscribe to every change channel and schedule the first update. Call from the event loop."""
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        self._started = True
        cfg = self.config

        self.page.on(" ".join(cfg.cart_events), self._on_cart_event)
        self.page.add_fetch_listener(self._on_fetch)

        # Only containers present now are observed.
        for container in self.page.select(cfg.container_selector):
            self._observations.append(
                self.page.observe(container, self._on_mutations, attribute_filter=cfg.observed_attributes)
            )

        self.page.delegate("input change", cfg.quantity_input_selector, self._on_quantity_input)
        self.page.delegate("click", cfg.remove_selector, self._on_remove_click)
        self.page.delegate("click", cfg.stepper_selector, self._on_stepper_click)

        # the markup may come from a cache with a stale count
        self.request_update()

    def stop(self) -> None:
        """Page teardown: drop the pending timer and every subscription."""
        self._cancel_timer()
        if not self._started:
            return
        cfg = self.config
        self.page.off(" ".join(cfg.cart_events), self._on_cart_event)
        self.page.remove_fetch_listener(self._on_fetch)
        for observation in self._observations:
            self.page.disconnect(observation)
        self._observations = []
        self.page.undelegate(self._on_quantity_input)
        self.page.undelegate(self._on_remove_click)
        self.page.undelegate(self._on_stepper_click)
        self._started = False

    def request_update(self, delay: Optional[float] = None) -> None:
        """(Re)schedule the single pending update `delay` seconds from now."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._cancel_timer()
        wait = self.config.debounce if delay is None else delay
        self._timer = self._loop.call_later(wait, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        task = self._loop.create_task(self.update())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def update(self) -> Optional[int]:
        """Query the count once and re-render. Returns the count, or None on failure."""
        try:
            count = await self.client.get_count()
        except CountUnavailable as exc:
            logger.warning("Cart badge update failed: %s", exc)
            return None
        except Exception:
            logger.exception("Cart badge update failed")
            return None

        render_badge(self.page.document, count, self.config)
        self.page.trigger(self.config.updated_event, count)
        return count

    async def drain(self) -> None:
        """Wait for in-flight updates (not for a pending timer)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    # channels

    def _on_cart_event(self, *args) -> None:
        self.request_update()

    def _on_fetch(self, url, response) -> None:
        if isinstance(url, str) and any(marker in url for marker in self.config.api_url_markers):
            self.request_update(self.config.fetch_settle)

    def _on_mutations(self, records: list) -> None:
        if any(self.is_relevant(record) for record in records):
            self.request_update()

    def _on_quantity_input(self, event_type, element) -> None:
        self.request_update()

    def _on_remove_click(self, event_type, element) -> None:
        self.request_update(self.config.remove_settle)

    def _on_stepper_click(self, event_type, element) -> None:
        self.request_update(self.config.stepper_settle)

    def is_relevant(self, record) -> bool:
        """Does this mutation look like the cart widget re-rendering quantities or totals?"""
        target = record.target
        if not hasattr(target, "getparent"):
            return False
        classes = (target.get("class") or "").split()
        if any(name in classes for name in self.config.totals_classes):
            return True
        if closest(target, self.config.item_container_selector, root=self.page.document) is not None:
            return True
        if record.type in ("childList", "characterData"):
            if self._price_re.search(target.text_content() or ""):
                return True
        return False
