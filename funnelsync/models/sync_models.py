"""FunnelSync — Sync Result Models."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from funnelsync.models.funnel_models import SummaryFields


class SyncState(str, Enum):
    """Per-request state machine."""

    REQUESTED = "requested"
    CACHE_CHECK = "cache_check"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    FETCHING = "fetching"
    PARSING = "parsing"
    AGGREGATING = "aggregating"
    PERSISTING = "persisting"
    DEGRADED = "degraded"
    SERVE = "serve"


class SyncStatus(str, Enum):
    """Outcome reported to the caller."""

    CACHE_HIT = "cache_hit"  # Served fresh stored data, no vendor call
    REFRESHED = "refreshed"  # Fetched, parsed, aggregated and stored
    DEGRADED = "degraded"  # Vendor failed; served last known-good data
    CREDENTIAL_ERROR = "credential_error"  # Served stale data (if any); needs token fix
    NO_DATA = "no_data"  # Vendor failed and nothing was ever stored


class SyncResult(BaseModel):
    """What triggerSync hands back. Never carries an exception."""

    client_id: str
    platform: str
    period_type: str
    period_id: str
    period_start: date
    period_end: date
    status: SyncStatus
    tier: str = ""  # "current" | "archive"
    summary: Optional[SummaryFields] = None
    data_source: str = ""
    last_updated: Optional[datetime] = None
    stale: bool = False
    error: Optional[str] = None
    states: List[SyncState] = []

    @property
    def has_data(self) -> bool:
        return self.summary is not None


class BatchResult(BaseModel):
    """Per-client outcomes of a batch job."""

    results: List[SyncResult] = []
    failures: dict[str, str] = {}

    @property
    def ok_count(self) -> int:
        return sum(
            1
            for r in self.results
            if r.status in (SyncStatus.CACHE_HIT, SyncStatus.REFRESHED)
        )
