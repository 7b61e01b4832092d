"""In-process stand-ins for vendor connectors."""

import asyncio
from datetime import date
from typing import List

from funnelsync.connectors.base import PlatformConnector
from funnelsync.core.taxonomy import Platform
from funnelsync.models.raw_models import ActionEntry, Grain, RawInsightRecord


def raw_record(
    campaign_id="1",
    spend=0.0,
    impressions=0,
    clicks=0,
    actions=(),
    values=(),
    platform=Platform.META,
):
    return RawInsightRecord(
        platform=platform,
        campaign_id=campaign_id,
        campaign_name=f"Campaign {campaign_id}",
        date_start=date(2025, 8, 1),
        date_stop=date(2025, 8, 31),
        spend=spend,
        impressions=impressions,
        clicks=clicks,
        actions=[ActionEntry(action_type=t, value=str(v)) for t, v in actions],
        action_values=[ActionEntry(action_type=t, value=str(v)) for t, v in values],
    )


class FakeConnector(PlatformConnector):
    """Plays back a scripted list of outcomes, one per call.

    An outcome is a list of records or an exception to raise. The last
    outcome repeats once the script runs out.
    """

    lookback_months = 37

    def __init__(self, *outcomes, platform: Platform = Platform.META, delay: float = 0.0):
        self.platform = platform
        self.outcomes = list(outcomes) or [[]]
        self.delay = delay
        self.calls: List[tuple] = []

    async def fetch_insights(self, account, credential, date_range, grain=Grain.AGGREGATE):
        self.calls.append((account.account_id, credential, date_range))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
