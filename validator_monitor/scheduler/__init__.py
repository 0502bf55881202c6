"""Check scheduling: per-endpoint check managers and the top-level tick loop."""

from .check_manager import CHANNEL_CAPACITY, CHECKER_ORDER, CheckManager
from .coordinator import Coordinator

__all__ = ["CHANNEL_CAPACITY", "CHECKER_ORDER", "CheckManager", "Coordinator"]
