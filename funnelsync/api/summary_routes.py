"""FunnelSync — Summary & Snapshot Routes."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from funnelsync.api.deps import get_orchestrator
from funnelsync.core.errors import InvalidDateRange
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import PeriodType, period_for
from funnelsync.core.taxonomy import Platform
from funnelsync.sync.orchestrator import SyncOrchestrator

logger = get_logger("api.summaries")

router = APIRouter(tags=["Summaries"])


def _no_data(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"status": "no_data", "message": message})


@router.get("/summaries/{client_id}/{platform}/{period_type}/{period_start}")
async def get_summary(
    client_id: str,
    platform: Platform,
    period_type: PeriodType,
    period_start: date,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Stored summary for one period.

    Archived periods come from the permanent archive; the open period from
    the current-period cache. Nothing is fetched from the vendor here.
    """
    try:
        period = period_for(period_type, period_start)
    except InvalidDateRange as e:
        raise HTTPException(status_code=400, detail=str(e))

    row = orchestrator.get_period_summary(client_id, platform, period_type, period.start)
    if row is not None:
        return {"status": "success", "tier": "archive", "summary": row.model_dump(mode="json")}

    entry = orchestrator.store.get_cache_entry(
        client_id, platform.value, period_type.value, period.period_id
    )
    if entry is not None:
        return {"status": "success", "tier": "current", "snapshot": entry.model_dump(mode="json")}

    raise _no_data(
        f"No {period_type.value} summary for {client_id}/{platform.value} {period.period_id}"
    )


@router.get("/snapshots/{client_id}/{platform}")
async def get_snapshot(
    client_id: str,
    platform: Platform,
    period_type: PeriodType = Query(PeriodType.MONTHLY),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Cached snapshot of the in-progress week or month."""
    entry = orchestrator.get_current_period_snapshot(client_id, platform, period_type)
    if entry is None:
        raise _no_data(
            f"No current {period_type.value} snapshot for {client_id}/{platform.value}"
        )
    return {"status": "success", "snapshot": entry.model_dump(mode="json")}
