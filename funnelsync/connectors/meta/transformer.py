"""FunnelSync — Meta Raw Row → RawInsightRecord.

Only coerces types; action arrays are passed through untouched for the
conversion parser.
"""

from datetime import date
from typing import Any, Dict, List

from funnelsync.core.taxonomy import Platform
from funnelsync.models.raw_models import ActionEntry, RawInsightRecord


def _safe_float(value: Any) -> float:
    """Safely convert a value to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _safe_int(value: Any) -> int:
    return int(_safe_float(value))


def _entries(items: Any) -> List[ActionEntry]:
    if not isinstance(items, list):
        return []
    return [
        ActionEntry(
            action_type=str(item.get("action_type", "")),
            value=str(item.get("value", "0")),
        )
        for item in items
        if isinstance(item, dict) and item.get("action_type")
    ]


def _parse_date(value: Any, default: date) -> date:
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return default


def to_raw_record(
    row: Dict[str, Any], date_start: date, date_stop: date
) -> RawInsightRecord:
    """Convert one campaign-level insights row."""
    return RawInsightRecord(
        platform=Platform.META,
        campaign_id=str(row.get("campaign_id", "")),
        campaign_name=str(row.get("campaign_name", "")),
        date_start=_parse_date(row.get("date_start"), date_start),
        date_stop=_parse_date(row.get("date_stop"), date_stop),
        spend=max(_safe_float(row.get("spend")), 0.0),
        impressions=max(_safe_int(row.get("impressions")), 0),
        clicks=max(_safe_int(row.get("clicks")), 0),
        reported_conversions=None,
        actions=_entries(row.get("actions")),
        action_values=_entries(row.get("action_values")),
    )


def transform_insights(
    raw_data: List[Dict[str, Any]], date_start: date, date_stop: date
) -> List[RawInsightRecord]:
    """Transform raw Meta insight rows into RawInsightRecords."""
    return [to_raw_record(row, date_start, date_stop) for row in raw_data]
