"""State Store - file-backed persistence and queries for the world."""

from .config import StoreConfig
from .state_store import (
    StateStore,
    StoreError,
    WorldLoadError,
    WorldNotLoadedError,
)

__all__ = [
    "StoreConfig",
    "StateStore",
    "StoreError",
    "WorldLoadError",
    "WorldNotLoadedError",
]
