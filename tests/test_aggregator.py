"""Aggregator: totals, zero-guarded ratios and per-campaign breakdown."""

import math

import pytest

from funnelsync.aggregator import aggregate, merge_campaign_rows
from funnelsync.models.funnel_models import CampaignMetrics, CanonicalFunnelRecord


def _campaign(cid, spend=0.0, impressions=0, clicks=0, reported=None, **funnel):
    return CampaignMetrics(
        campaign_id=cid,
        campaign_name=f"Campaign {cid}",
        spend=spend,
        impressions=impressions,
        clicks=clicks,
        reported_conversions=reported,
        funnel=CanonicalFunnelRecord(**funnel),
    )


def test_empty_input_gives_zero_summary():
    summary = aggregate([])
    assert summary.total_spend == 0
    assert summary.average_ctr == 0
    assert summary.roas == 0
    assert summary.campaign_data == []


def test_zero_denominators_never_raise_or_nan():
    summary = aggregate([_campaign("1", spend=0.0, impressions=0, clicks=0)])
    for value in (
        summary.average_ctr,
        summary.average_cpc,
        summary.average_cpa,
        summary.roas,
        summary.cost_per_reservation,
    ):
        assert value == 0
        assert not math.isnan(value) and not math.isinf(value)


def test_spend_without_purchases_has_zero_cost_per_reservation():
    summary = aggregate([_campaign("1", spend=50.0, impressions=100, clicks=10)])
    assert summary.cost_per_reservation == 0
    assert summary.average_cpc == 5.0


def test_totals_and_ratios():
    summary = aggregate(
        [
            _campaign("1", spend=100.0, impressions=1000, clicks=50, purchase=1, purchase_value=200.0),
            _campaign("2", spend=50.0, impressions=500, clicks=25),
        ]
    )
    assert summary.total_spend == 150.0
    assert summary.total_impressions == 1500
    assert summary.total_clicks == 75
    assert summary.average_ctr == pytest.approx(0.05)
    assert summary.average_cpc == pytest.approx(2.0)
    assert summary.roas == pytest.approx(1.3333, abs=1e-4)
    assert summary.cost_per_reservation == 150.0
    assert summary.total_conversions == 1.0
    assert [c["campaign_id"] for c in summary.campaign_data] == ["1", "2"]


def test_reported_conversions_preferred_over_purchases():
    summary = aggregate([_campaign("1", spend=30.0, reported=6.0, purchase=2)])
    assert summary.total_conversions == 6.0
    assert summary.average_cpa == 5.0


def test_proxied_steps_are_unioned_in_funnel_order():
    summary = aggregate(
        [
            _campaign("1", booking_step_3=1, proxied_steps=["booking_step_3"]),
            _campaign("2", booking_step_1=5, proxied_steps=["booking_step_1"]),
        ]
    )
    assert summary.proxied_steps == ["booking_step_1", "booking_step_3"]


def test_daily_rows_merged_per_campaign():
    rows = [
        _campaign("1", spend=10.0, impressions=100, clicks=5, lead=1),
        _campaign("1", spend=15.0, impressions=200, clicks=5, lead=2, purchase_value=20.0),
        _campaign("2", spend=5.0),
    ]
    merged = merge_campaign_rows(rows)
    assert len(merged) == 2
    assert merged[0].spend == 25.0
    assert merged[0].funnel.lead == 3
    assert merged[0].funnel.purchase_value == 20.0
    assert aggregate(rows).campaign_data[0]["impressions"] == 300
