"""FunnelSync — Meta Insights Connector.

Campaign-level insights for one ad account and date window.
"""

import json
from typing import List, Optional

import httpx

from funnelsync.config import settings
from funnelsync.connectors.base import PlatformConnector
from funnelsync.connectors.meta.client import MetaClient, META_BASE
from funnelsync.connectors.meta.transformer import transform_insights
from funnelsync.core.periods import PeriodRange
from funnelsync.core.taxonomy import Platform
from funnelsync.core.logging import get_logger
from funnelsync.models.raw_models import Grain, RawInsightRecord
from funnelsync.models.store_models import Account

logger = get_logger("meta.endpoints")

INSIGHT_FIELDS = (
    "campaign_name,campaign_id,"
    "impressions,clicks,spend,"
    "actions,action_values"
)


def account_path(account_id: str) -> str:
    """Graph API node for an ad account (always `act_` prefixed)."""
    return account_id if account_id.startswith("act_") else f"act_{account_id}"


class MetaConnector(PlatformConnector):
    """Fetches raw campaign insights from the Meta Marketing API."""

    platform = Platform.META

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        lookback_months: int | None = None,
    ):
        self._transport = transport
        self.lookback_months = lookback_months or settings.meta_lookback_months

    async def fetch_insights(
        self,
        account: Account,
        credential: str,
        date_range: PeriodRange,
        grain: Grain = Grain.AGGREGATE,
    ) -> List[RawInsightRecord]:
        """Fetch campaign-level insights for the window."""
        url = f"{META_BASE}/{account_path(account.account_id)}/insights"
        params = {
            "fields": INSIGHT_FIELDS,
            "time_range": json.dumps(
                {
                    "since": date_range.start.isoformat(),
                    "until": date_range.end.isoformat(),
                }
            ),
            "time_increment": "1" if grain == Grain.DAILY else "all_days",
            "level": "campaign",
            "limit": 500,
        }

        client = MetaClient(credential, transport=self._transport)
        try:
            data = await client.paginated_get(url, params)
        finally:
            await client.close()

        records = transform_insights(data, date_range.start, date_range.end)
        logger.info(
            f"Fetched {len(records)} campaign insight records",
            extra={"platform": self.platform.value},
        )
        return records
