"""FunnelSync — Google Ads Rows → RawInsightRecord.

Joins the campaign metrics rows with the per-conversion-action breakdown
rows. Each breakdown row becomes an `actions` entry (conversion count) and
an `action_values` entry (conversion value) keyed by the conversion action
name, so Google records share Meta's parser input shape.
"""

from collections import OrderedDict
from datetime import date
from typing import Any, Dict, List, Tuple

from funnelsync.core.taxonomy import Platform
from funnelsync.models.raw_models import ActionEntry, RawInsightRecord

MICROS = 1_000_000


def _safe_float(value: Any) -> float:
    """Safely convert a value to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _row_key(row: Dict[str, Any], daily: bool) -> Tuple[str, str]:
    campaign_id = str(row.get("campaign", {}).get("id", ""))
    day = row.get("segments", {}).get("date", "") if daily else ""
    return campaign_id, day


def _day_or(value: str, default: date) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return default


def transform_rows(
    metric_rows: List[Dict[str, Any]],
    conversion_rows: List[Dict[str, Any]],
    date_start: date,
    date_stop: date,
    daily: bool = False,
) -> List[RawInsightRecord]:
    """Merge both GAQL result sets into one record per campaign (per day)."""
    records: "OrderedDict[Tuple[str, str], RawInsightRecord]" = OrderedDict()

    for row in metric_rows:
        key = _row_key(row, daily)
        campaign = row.get("campaign", {})
        metrics = row.get("metrics", {})
        start = _day_or(key[1], date_start) if daily else date_start
        stop = _day_or(key[1], date_stop) if daily else date_stop

        existing = records.get(key)
        spend = max(_safe_float(metrics.get("costMicros")) / MICROS, 0.0)
        impressions = max(int(_safe_float(metrics.get("impressions"))), 0)
        clicks = max(int(_safe_float(metrics.get("clicks"))), 0)
        conversions = max(_safe_float(metrics.get("allConversions")), 0.0)

        if existing:
            # Same campaign reported twice (e.g. one row per network)
            existing.spend += spend
            existing.impressions += impressions
            existing.clicks += clicks
            existing.reported_conversions = (existing.reported_conversions or 0.0) + conversions
            continue

        records[key] = RawInsightRecord(
            platform=Platform.GOOGLE,
            campaign_id=key[0],
            campaign_name=str(campaign.get("name", "")),
            date_start=start,
            date_stop=stop,
            spend=spend,
            impressions=impressions,
            clicks=clicks,
            reported_conversions=conversions,
        )

    for row in conversion_rows:
        key = _row_key(row, daily)
        record = records.get(key)
        if record is None:
            # Conversions attributed to a campaign with no delivery rows
            campaign = row.get("campaign", {})
            record = RawInsightRecord(
                platform=Platform.GOOGLE,
                campaign_id=key[0],
                campaign_name=str(campaign.get("name", "")),
                date_start=_day_or(key[1], date_start) if daily else date_start,
                date_stop=_day_or(key[1], date_stop) if daily else date_stop,
            )
            records[key] = record

        action_name = str(row.get("segments", {}).get("conversionActionName", ""))
        if not action_name:
            continue
        metrics = row.get("metrics", {})
        record.actions.append(
            ActionEntry(action_type=action_name, value=str(metrics.get("allConversions", 0)))
        )
        record.action_values.append(
            ActionEntry(
                action_type=action_name,
                value=str(metrics.get("allConversionsValue", 0)),
            )
        )

    return list(records.values())
