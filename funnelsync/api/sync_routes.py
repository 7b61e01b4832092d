"""FunnelSync — Sync Routes."""

from datetime import date
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from funnelsync.api.deps import (
    get_clock,
    get_connectors,
    get_credentials,
    get_orchestrator,
    get_session_factory,
)
from funnelsync.connectors.base import PlatformConnector
from funnelsync.connectors.credentials import CredentialProvider
from funnelsync.core.clock import Clock
from funnelsync.core.errors import ConnectorError, InvalidDateRange, StoreConflict
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import PeriodType, current_period
from funnelsync.core.taxonomy import Platform
from funnelsync.models.sync_models import BatchResult, SyncResult
from funnelsync.sync.batch import BatchRunner
from funnelsync.sync.orchestrator import SyncOrchestrator

logger = get_logger("api.sync")

router = APIRouter(tags=["Sync"])


# ── Request Models ──


class SyncRequest(BaseModel):
    """Request body for POST /sync."""

    client_id: str
    platform: Platform
    period_type: PeriodType = PeriodType.MONTHLY
    period_start: Optional[date] = None
    """Canonical period start (Monday / 1st). Defaults to the current period."""
    force_refresh: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"client_id": "hotel-a", "platform": "meta", "period_type": "monthly",
                 "period_start": "2025-08-01"},
            ]
        }
    }


class BatchSyncRequest(BaseModel):
    """Request body for POST /sync/batch."""

    period_type: PeriodType = PeriodType.MONTHLY
    period_start: Optional[date] = None
    client_ids: Optional[List[str]] = None
    force_refresh: bool = False


# ── Endpoints ──


@router.post("/sync", response_model=SyncResult)
async def trigger_sync(
    request: SyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Serve one period from cache or refresh it from the vendor.

    Vendor failures come back as degraded / no_data results, not errors.
    """
    period_start = request.period_start or current_period(
        request.period_type, orchestrator.clock.today()
    ).start
    try:
        return await orchestrator.trigger_sync(
            request.client_id,
            request.platform,
            request.period_type,
            period_start,
            force_refresh=request.force_refresh,
        )
    except InvalidDateRange as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConnectorError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except StoreConflict as e:
        logger.error(f"Sync could not be stored: {e}")
        raise HTTPException(status_code=500, detail=f"Store failure: {e}")


@router.post("/sync/batch", response_model=BatchResult)
async def trigger_batch_sync(
    request: BatchSyncRequest,
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    connectors: Dict[Platform, PlatformConnector] = Depends(get_connectors),
    credentials: CredentialProvider = Depends(get_credentials),
    clock: Clock = Depends(get_clock),
):
    """Sync every client with enabled accounts; failures are reported per client."""
    runner = BatchRunner(session_factory, connectors, credentials=credentials, clock=clock)
    return await runner.run(
        request.period_type,
        request.period_start,
        client_ids=request.client_ids,
        force_refresh=request.force_refresh,
    )
