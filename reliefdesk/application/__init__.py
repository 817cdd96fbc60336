"""Application services."""

from .relief import ReliefService, get_relief_service, reset_relief_state

__all__ = [
    "ReliefService",
    "get_relief_service",
    "reset_relief_state",
]
