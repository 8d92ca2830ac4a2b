from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from .sync.config import CONFIG_ELEMENT_ID, DEFAULT_ACTION, DEFAULT_BADGE_CLASS

DEFAULT_COUNT_PROVIDER = "badge.services.counts.cart_contents_count"


@dataclass(frozen=True)
class BadgeSettings:
    count_provider: str
    action: str
    badge_class: str
    config_element_id: str = CONFIG_ELEMENT_ID


@lru_cache(maxsize=None)
def get_badge_settings() -> BadgeSettings:
    """Build the badge configuration once per process from Django settings."""
    return BadgeSettings(
        count_provider=getattr(settings, "CART_BADGE_COUNT_PROVIDER", DEFAULT_COUNT_PROVIDER),
        action=getattr(settings, "CART_BADGE_ACTION", DEFAULT_ACTION),
        badge_class=getattr(settings, "CART_BADGE_CLASS", DEFAULT_BADGE_CLASS),
    )


@receiver(setting_changed)
def _reset_badge_settings(sender, setting, **kwargs):
    if setting.startswith("CART_BADGE_"):
        get_badge_settings.cache_clear()
