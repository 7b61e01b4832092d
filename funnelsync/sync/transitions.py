"""FunnelSync — Period Transitions.

When a week or month closes, its current-period cache row becomes a
permanent archive row tagged `*_smart_cache_archive` (or its
`*_proxy_funnel_*` variant when booking steps came from proxy events),
and the cache row is dropped.
"""

from typing import Dict

from sqlmodel import Session

from funnelsync.config import Settings, settings
from funnelsync.core.clock import Clock, system_clock
from funnelsync.core.errors import FunnelSyncError
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import PeriodType, is_period_closed, period_for
from funnelsync.core.taxonomy import Platform, archive_data_source, is_proxy_data_source
from funnelsync.store.cache_store import CacheStore, summary_from_cache

logger = get_logger("sync.transitions")


def archive_closed_periods(
    session: Session,
    clock: Clock = system_clock,
    config: Settings = settings,
) -> Dict[str, int]:
    """Move every closed period out of the current-period cache.

    The archive row keeps the cache row's `last_updated`, so a newer live
    archive written by the orchestrator is never overwritten.
    """
    store = CacheStore(session)
    today = clock.today()
    counts = {"archived": 0, "open": 0, "failed": 0}

    for entry in store.list_cache_entries():
        extra = {
            "client_id": entry.client_id,
            "platform": entry.platform,
            "period_id": entry.period_id,
        }
        try:
            period = period_for(PeriodType(entry.period_type), entry.period_start)
            if not is_period_closed(period, today, config.reporting_lag_days):
                counts["open"] += 1
                continue

            platform = Platform(entry.platform)
            cached = entry.cache_data or {}
            proxied = bool(cached.get("proxied_steps")) or is_proxy_data_source(
                cached.get("data_source", "")
            )
            store.upsert_summary(
                entry.client_id,
                platform.value,
                period,
                summary_from_cache(entry),
                archive_data_source(platform, proxied).value,
                entry.last_updated,
            )
            store.delete_cache_entry(
                entry.client_id, platform.value, period.period_type.value, period.period_id
            )
            counts["archived"] += 1
        except (FunnelSyncError, ValueError) as e:
            counts["failed"] += 1
            logger.error(f"Could not archive cache row: {e}", extra=extra)

    logger.info(
        f"Period transition: {counts['archived']} archived, "
        f"{counts['open']} still open, {counts['failed']} failed"
    )
    return counts
