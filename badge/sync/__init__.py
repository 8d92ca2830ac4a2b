from .client import CountClient, CountUnavailable
from .config import SyncConfig
from .loop import IDLE, SCHEDULED, BadgeSync
from .page import MutationRecord, Page
from .render import find_cart_anchors, render_badge

__all__ = [
    "BadgeSync",
    "CountClient",
    "CountUnavailable",
    "IDLE",
    "MutationRecord",
    "Page",
    "SCHEDULED",
    "SyncConfig",
    "find_cart_anchors",
    "render_badge",
]
