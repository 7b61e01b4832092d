"""FunnelSync — Canonical Funnel Models."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ParseAmbiguity(BaseModel):
    """A vendor action type that matched no canonical category."""

    action_type: str
    value: float = 0.0


class CanonicalFunnelRecord(BaseModel):
    """Normalized per-campaign conversion funnel.

    Every numeric field is non-negative. `purchase_value` accumulates across
    all qualifying value entries.
    """

    click_to_call: int = Field(default=0, ge=0)
    lead: int = Field(default=0, ge=0)
    purchase: int = Field(default=0, ge=0)
    purchase_value: float = Field(default=0.0, ge=0)
    booking_step_1: int = Field(default=0, ge=0)
    booking_step_2: int = Field(default=0, ge=0)
    booking_step_3: int = Field(default=0, ge=0)
    proxied_steps: List[str] = []
    unmapped_actions: List[ParseAmbiguity] = []


class CampaignMetrics(BaseModel):
    """Core metrics of one campaign joined with its parsed funnel."""

    campaign_id: str
    campaign_name: str = ""
    spend: float = Field(default=0.0, ge=0)
    impressions: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    reported_conversions: Optional[float] = None
    funnel: CanonicalFunnelRecord = CanonicalFunnelRecord()

    @property
    def conversions(self) -> float:
        """Vendor-reported total when available, else canonical purchases."""
        if self.reported_conversions is not None:
            return self.reported_conversions
        return float(self.funnel.purchase)


class SummaryFields(BaseModel):
    """Aggregator output: the business fields of a PeriodSummary."""

    total_spend: float = 0.0
    total_impressions: int = 0
    total_clicks: int = 0
    total_conversions: float = 0.0
    average_ctr: float = 0.0
    average_cpc: float = 0.0
    average_cpa: float = 0.0
    roas: float = 0.0
    cost_per_reservation: float = 0.0
    click_to_call: int = 0
    lead: int = 0
    purchase: int = 0
    purchase_value: float = 0.0
    booking_step_1: int = 0
    booking_step_2: int = 0
    booking_step_3: int = 0
    proxied_steps: List[str] = []
    campaign_data: List[dict] = []
