"""FunnelSync — Raw Insight Models (Ephemeral).

Produced by a platform connector, consumed immediately by the conversion
parser. Never persisted as-is.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from funnelsync.core.taxonomy import Platform


class Grain(str, Enum):
    """How a connector slices the requested window."""

    AGGREGATE = "aggregate"  # One row per campaign for the whole window
    DAILY = "daily"  # One row per campaign per day


class ActionEntry(BaseModel):
    """One vendor action/conversion entry, kept as the vendor sent it."""

    action_type: str
    value: str = "0"


class RawInsightRecord(BaseModel):
    """One campaign's raw metrics and vendor-native action payload."""

    platform: Platform
    campaign_id: str
    campaign_name: str = ""
    date_start: date
    date_stop: date
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    reported_conversions: Optional[float] = Field(
        default=None, description="Vendor's own conversion total, if it reports one"
    )
    actions: List[ActionEntry] = []
    action_values: List[ActionEntry] = []
