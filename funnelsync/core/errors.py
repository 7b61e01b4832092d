"""FunnelSync — Error Taxonomy.

Connector and store failures are raised as these types so the sync
orchestrator can decide between retry, degrade and report.
"""

from typing import Optional


class FunnelSyncError(Exception):
    """Base class for all engine errors."""


class CredentialError(FunnelSyncError):
    """Expired or invalid vendor credential. Never retried automatically."""

    def __init__(self, message: str, status_code: int = 0, error_code: int | str = 0):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class RateLimited(FunnelSyncError):
    """Vendor asked us to back off."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message)


class InvalidDateRange(FunnelSyncError):
    """Caller/config error: the requested window cannot be served."""


class ConnectorError(FunnelSyncError):
    """Any other vendor or transport failure."""

    def __init__(self, message: str, status_code: int = 0, error_code: int | str = 0):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class StoreConflict(FunnelSyncError):
    """The store itself failed while applying a keyed upsert."""
