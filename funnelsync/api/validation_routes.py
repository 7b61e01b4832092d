"""FunnelSync — Validation Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from funnelsync.api.deps import get_clock
from funnelsync.core.clock import Clock
from funnelsync.database import get_session
from funnelsync.validation.anomaly_validator import (
    AnomalyValidator,
    IssueKind,
    list_validation_issues,
)

router = APIRouter(tags=["Validation"])


@router.get("/validation-issues")
async def get_validation_issues(
    client_id: Optional[str] = Query(None),
    platform: Optional[str] = Query(None),
    kind: Optional[IssueKind] = Query(None),
    session: Session = Depends(get_session),
):
    """Stored anomaly findings, newest first."""
    issues = list_validation_issues(
        session, client_id=client_id, platform=platform, kind=kind.value if kind else None
    )
    return {
        "status": "success",
        "count": len(issues),
        "issues": [i.model_dump(mode="json") for i in issues],
    }


@router.post("/validation/run")
async def run_validation(
    client_id: Optional[str] = Query(None),
    platform: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """Re-validate the archive (or one client/platform of it)."""
    issues = AnomalyValidator(session, clock).run(client_id=client_id, platform=platform)
    return {"status": "success", "count": len(issues)}
