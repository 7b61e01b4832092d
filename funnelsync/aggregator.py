"""FunnelSync — Aggregator.

Rolls parsed campaign metrics up into the business fields of one period
summary: totals, derived ratios and the per-campaign breakdown.
Every ratio is 0 when its denominator is 0.
"""

from typing import Dict, List

from funnelsync.core.logging import get_logger
from funnelsync.core.taxonomy import BOOKING_STEPS
from funnelsync.models.funnel_models import (
    CampaignMetrics,
    CanonicalFunnelRecord,
    SummaryFields,
)

logger = get_logger("aggregator")

FUNNEL_COUNT_FIELDS = (
    "click_to_call",
    "lead",
    "purchase",
    "booking_step_1",
    "booking_step_2",
    "booking_step_3",
)


def ratio(numerator: float, denominator: float) -> float:
    return (numerator / denominator) if denominator > 0 else 0.0


def merge_campaign_rows(campaigns: List[CampaignMetrics]) -> List[CampaignMetrics]:
    """Collapse daily rows into one entry per campaign, first-seen order."""
    merged: Dict[str, CampaignMetrics] = {}
    for c in campaigns:
        existing = merged.get(c.campaign_id)
        if existing is None:
            merged[c.campaign_id] = c.model_copy(deep=True)
            continue

        funnel = existing.funnel
        reported = existing.reported_conversions
        if c.reported_conversions is not None:
            reported = (reported or 0.0) + c.reported_conversions

        merged[c.campaign_id] = CampaignMetrics(
            campaign_id=c.campaign_id,
            campaign_name=existing.campaign_name or c.campaign_name,
            spend=existing.spend + c.spend,
            impressions=existing.impressions + c.impressions,
            clicks=existing.clicks + c.clicks,
            reported_conversions=reported,
            funnel=CanonicalFunnelRecord(
                **{f: getattr(funnel, f) + getattr(c.funnel, f) for f in FUNNEL_COUNT_FIELDS},
                purchase_value=round(funnel.purchase_value + c.funnel.purchase_value, 2),
                proxied_steps=sorted(set(funnel.proxied_steps) | set(c.funnel.proxied_steps)),
                unmapped_actions=funnel.unmapped_actions + c.funnel.unmapped_actions,
            ),
        )
    return list(merged.values())


def campaign_row(c: CampaignMetrics) -> dict:
    """JSON-ready per-campaign breakdown entry."""
    return {
        "campaign_id": c.campaign_id,
        "campaign_name": c.campaign_name,
        "spend": round(c.spend, 2),
        "impressions": c.impressions,
        "clicks": c.clicks,
        "conversions": round(c.conversions, 2),
        "ctr": round(ratio(c.clicks, c.impressions), 6),
        "cpc": round(ratio(c.spend, c.clicks), 4),
        **{f: getattr(c.funnel, f) for f in FUNNEL_COUNT_FIELDS},
        "purchase_value": c.funnel.purchase_value,
        "roas": round(ratio(c.funnel.purchase_value, c.spend), 4),
    }


def aggregate(campaigns: List[CampaignMetrics]) -> SummaryFields:
    """Sum campaign metrics into summary totals with zero-guarded ratios."""
    campaigns = merge_campaign_rows(campaigns)

    spend = sum(c.spend for c in campaigns)
    impressions = sum(c.impressions for c in campaigns)
    clicks = sum(c.clicks for c in campaigns)
    conversions = sum(c.conversions for c in campaigns)
    funnel = {f: sum(getattr(c.funnel, f) for c in campaigns) for f in FUNNEL_COUNT_FIELDS}
    purchase_value = sum(c.funnel.purchase_value for c in campaigns)

    proxied = set()
    for c in campaigns:
        proxied.update(c.funnel.proxied_steps)

    summary = SummaryFields(
        total_spend=round(spend, 2),
        total_impressions=impressions,
        total_clicks=clicks,
        total_conversions=round(conversions, 2),
        average_ctr=round(ratio(clicks, impressions), 6),
        average_cpc=round(ratio(spend, clicks), 4),
        average_cpa=round(ratio(spend, conversions), 4),
        roas=round(ratio(purchase_value, spend), 4),
        cost_per_reservation=round(ratio(spend, funnel["purchase"]), 4),
        purchase_value=round(purchase_value, 2),
        proxied_steps=[s.value for s in BOOKING_STEPS if s.value in proxied],
        campaign_data=[campaign_row(c) for c in campaigns],
        **funnel,
    )
    logger.debug(
        f"Aggregated {len(campaigns)} campaigns: spend={summary.total_spend} "
        f"roas={summary.roas}"
    )
    return summary
