"""Origin feed state, retrieval and periodic refresh."""

from .fetcher import OriginFetcher, validate_origin_url
from .models import Origin, OriginAuth, OriginAuthType, Snapshot
from .scheduler import RefreshScheduler, RefreshState

__all__ = [
    "Origin",
    "OriginAuth",
    "OriginAuthType",
    "OriginFetcher",
    "RefreshScheduler",
    "RefreshState",
    "Snapshot",
    "validate_origin_url",
]
