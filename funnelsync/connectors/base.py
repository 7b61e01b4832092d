"""FunnelSync — Abstract Platform Connector."""

from abc import ABC, abstractmethod
from typing import List

from funnelsync.core.periods import PeriodRange
from funnelsync.core.taxonomy import Platform
from funnelsync.models.raw_models import Grain, RawInsightRecord
from funnelsync.models.store_models import Account


class PlatformConnector(ABC):
    """Fetches raw per-campaign insights for one vendor.

    Connectors never parse or aggregate, and never retry: a failure is
    raised as CredentialError, RateLimited, InvalidDateRange or
    ConnectorError for the sync orchestrator to handle. A valid call with
    no activity returns an empty list.
    """

    platform: Platform
    lookback_months: int

    @abstractmethod
    async def fetch_insights(
        self,
        account: Account,
        credential: str,
        date_range: PeriodRange,
        grain: Grain = Grain.AGGREGATE,
    ) -> List[RawInsightRecord]:
        """Return one record per campaign (per day when grain is DAILY).

        Args:
            account: The client's account on this platform.
            credential: An already-valid bearer token for the account.
            date_range: Inclusive window to fetch.
            grain: Aggregate over the window, or one row per day.
        """
        ...

    async def close(self) -> None:
        """Release any pooled HTTP resources."""
        return None
