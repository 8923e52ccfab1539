from postcache.services.refresh_service import (
    RefreshCoordinator,
    RefreshGate,
    RefreshInProgressError,
    build_coordinator,
)

__all__ = [
    "RefreshCoordinator",
    "RefreshGate",
    "RefreshInProgressError",
    "build_coordinator",
]
