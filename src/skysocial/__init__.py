"""Client-side synchronization layer for a decentralized social network."""

from __future__ import annotations

from .bootstrap import configure_logging
from .services import ServiceContext
from .state import AppState

__all__ = ["AppState", "ServiceContext", "configure_logging"]
