"""FunnelSync — Google Ads Campaign Connector.

Two GAQL queries per fetch: delivery metrics per campaign, and the
conversion-action breakdown per campaign.
"""

from typing import List, Optional

import httpx

from funnelsync.config import settings
from funnelsync.connectors.base import PlatformConnector
from funnelsync.connectors.google.client import GoogleAdsClient
from funnelsync.connectors.google.transformer import transform_rows
from funnelsync.core.periods import PeriodRange
from funnelsync.core.taxonomy import Platform
from funnelsync.core.logging import get_logger
from funnelsync.models.raw_models import Grain, RawInsightRecord
from funnelsync.models.store_models import Account

logger = get_logger("google.endpoints")


def campaign_metrics_query(date_range: PeriodRange, daily: bool) -> str:
    date_field = "segments.date," if daily else ""
    return f"""
        SELECT
            campaign.id,
            campaign.name,
            {date_field}
            metrics.cost_micros,
            metrics.impressions,
            metrics.clicks,
            metrics.all_conversions,
            metrics.all_conversions_value
        FROM campaign
        WHERE segments.date BETWEEN '{date_range.start.isoformat()}' AND '{date_range.end.isoformat()}'
            AND campaign.status != 'REMOVED'
    """


def conversion_breakdown_query(date_range: PeriodRange, daily: bool) -> str:
    date_field = "segments.date," if daily else ""
    return f"""
        SELECT
            campaign.id,
            campaign.name,
            {date_field}
            segments.conversion_action_name,
            metrics.all_conversions,
            metrics.all_conversions_value
        FROM campaign
        WHERE segments.date BETWEEN '{date_range.start.isoformat()}' AND '{date_range.end.isoformat()}'
            AND metrics.all_conversions > 0
    """


class GoogleAdsConnector(PlatformConnector):
    """Fetches raw campaign metrics and conversion breakdowns from Google Ads."""

    platform = Platform.GOOGLE

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        lookback_months: int | None = None,
        developer_token: str | None = None,
    ):
        self._transport = transport
        self._developer_token = developer_token
        self.lookback_months = lookback_months or settings.google_ads_lookback_months

    async def fetch_insights(
        self,
        account: Account,
        credential: str,
        date_range: PeriodRange,
        grain: Grain = Grain.AGGREGATE,
    ) -> List[RawInsightRecord]:
        """Fetch per-campaign metrics and conversion actions for the window."""
        daily = grain == Grain.DAILY
        client = GoogleAdsClient(
            credential,
            developer_token=self._developer_token,
            login_customer_id=account.manager_account_id,
            transport=self._transport,
        )
        try:
            metric_rows = await client.search_stream(
                account.account_id, campaign_metrics_query(date_range, daily)
            )
            conversion_rows = await client.search_stream(
                account.account_id, conversion_breakdown_query(date_range, daily)
            )
        finally:
            await client.close()

        records = transform_rows(
            metric_rows, conversion_rows, date_range.start, date_range.end, daily
        )
        logger.info(
            f"Fetched {len(records)} campaign records "
            f"({len(conversion_rows)} conversion-action rows)",
            extra={"platform": self.platform.value},
        )
        return records
