from __future__ import annotations

import asyncio
import logging
from typing import Optional

import requests

from .config import DEFAULT_ACTION

logger = logging.getLogger(__name__)


class CountUnavailable(Exception):
    """The count endpoint could not give us a usable count."""


class CountClient:
    """Queries the cart count endpoint with the token the page was rendered with."""

    def __init__(self, url: str, nonce: str, action: str = DEFAULT_ACTION,
                 session: Optional[requests.Session] = None, timeout: float = 10,
                 referer: Optional[str] = None):
        self.url = url
        self.nonce = nonce
        self.action = action
        self.session = session or requests.Session()
        self.timeout = timeout
        self.referer = referer

    @classmethod
    def from_config(cls, config: dict, base_url: str = "", **kwargs) -> "CountClient":
        try:
            url = base_url.rstrip("/") + config["ajaxurl"] if base_url else config["ajaxurl"]
            nonce = config["nonce"]
        except KeyError as exc:
            raise ValueError(f"Badge configuration is missing {exc.args[0]!r}") from exc
        return cls(url, nonce, action=config.get("action") or DEFAULT_ACTION, **kwargs)

    def fetch_count(self) -> int:
        headers = {"X-CSRFToken": self.nonce}
        if self.referer:
            headers["Referer"] = self.referer
        try:
            response = self.session.post(
                self.url,
                data={"action": self.action, "nonce": self.nonce},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise CountUnavailable(f"request failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise CountUnavailable(f"malformed response (HTTP {response.status_code})") from exc

        if not isinstance(payload, dict) or not payload.get("success"):
            reason = payload.get("data") if isinstance(payload, dict) else None
            raise CountUnavailable(f"endpoint refused (HTTP {response.status_code}): {reason or 'no reason given'}")

        count = payload.get("data")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise CountUnavailable(f"invalid count {count!r}")
        return count

    async def get_count(self) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.fetch_count)
