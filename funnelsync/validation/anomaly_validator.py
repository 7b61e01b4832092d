"""FunnelSync — Anomaly Validator.

Batch consistency checks over the summary archive. Findings are advisory:
they are stored for review and never block serving or syncing.

Checks:
  - duplicate              more than one row per (client, platform, type, date)
  - non_monday_week        weekly summary not starting on a Monday
  - zero_data              spend, impressions and clicks all zero
  - funnel_monotonicity    a later booking step exceeds an earlier one
  - wrong_data_source      data_source outside the platform's tags
"""

from collections import defaultdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete
from sqlmodel import Session, select

from funnelsync.core.clock import Clock, system_clock
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import PeriodType, is_monday
from funnelsync.core.taxonomy import is_valid_data_source
from funnelsync.models.store_models import PeriodSummary, ValidationIssue

logger = get_logger("validation")


class IssueKind(str, Enum):
    DUPLICATE = "duplicate"
    NON_MONDAY_WEEK = "non_monday_week"
    ZERO_DATA = "zero_data"
    FUNNEL_MONOTONICITY = "funnel_monotonicity"
    WRONG_DATA_SOURCE = "wrong_data_source"


Finding = Tuple[PeriodSummary, IssueKind, str]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _updated_at(row: PeriodSummary) -> datetime:
    if row.last_updated is None:
        return _EPOCH
    if row.last_updated.tzinfo is None:
        return row.last_updated.replace(tzinfo=timezone.utc)
    return row.last_updated


# ─────────────────────────────────────────────
# PURE CHECKS
# ─────────────────────────────────────────────


def find_duplicates(rows: Iterable[PeriodSummary]) -> List[Finding]:
    """Flag every row but the newest within each natural key."""
    groups: Dict[tuple, List[PeriodSummary]] = defaultdict(list)
    for row in rows:
        key = (row.client_id, row.platform, row.summary_type, row.summary_date)
        groups[key].append(row)

    findings: List[Finding] = []
    for key, group in groups.items():
        if len(group) < 2:
            continue
        group.sort(key=_updated_at, reverse=True)
        canonical = group[0]
        for row in group[1:]:
            findings.append(
                (
                    row,
                    IssueKind.DUPLICATE,
                    f"Duplicate of summary {canonical.id} for {key[3]} "
                    f"(kept newest, updated {canonical.last_updated})",
                )
            )
    return findings


def check_non_monday_week(row: PeriodSummary) -> Optional[str]:
    if row.summary_type == PeriodType.WEEKLY.value and not is_monday(row.summary_date):
        return f"Weekly summary starts on {row.summary_date:%A} {row.summary_date}"
    return None


def check_zero_data(row: PeriodSummary) -> Optional[str]:
    if row.total_spend == 0 and row.total_impressions == 0 and row.total_clicks == 0:
        return "Spend, impressions and clicks are all zero"
    return None


def check_funnel_monotonicity(row: PeriodSummary) -> Optional[str]:
    # Only meaningful once the funnel has an entry point
    if row.booking_step_1 <= 0:
        return None
    problems = []
    if row.booking_step_2 > row.booking_step_1:
        problems.append(f"step 2 ({row.booking_step_2}) > step 1 ({row.booking_step_1})")
    if row.booking_step_3 > row.booking_step_2:
        problems.append(f"step 3 ({row.booking_step_3}) > step 2 ({row.booking_step_2})")
    return "; ".join(problems) or None


def check_data_source(row: PeriodSummary) -> Optional[str]:
    if not is_valid_data_source(row.platform, row.data_source):
        return f"Data source {row.data_source!r} is not valid for {row.platform}"
    return None


ROW_CHECKS = (
    (IssueKind.NON_MONDAY_WEEK, check_non_monday_week),
    (IssueKind.ZERO_DATA, check_zero_data),
    (IssueKind.FUNNEL_MONOTONICITY, check_funnel_monotonicity),
    (IssueKind.WRONG_DATA_SOURCE, check_data_source),
)


def validate_rows(rows: List[PeriodSummary]) -> List[Finding]:
    """Every finding for a set of archive rows."""
    findings = find_duplicates(rows)
    for row in rows:
        for kind, check in ROW_CHECKS:
            detail = check(row)
            if detail:
                findings.append((row, kind, detail))
    return findings


# ─────────────────────────────────────────────
# PERSISTENCE
# ─────────────────────────────────────────────


class AnomalyValidator:
    """Runs the checks over the archive and stores the findings."""

    def __init__(self, session: Session, clock: Clock = system_clock):
        self.session = session
        self.clock = clock

    def run(
        self, client_id: Optional[str] = None, platform: Optional[str] = None
    ) -> List[ValidationIssue]:
        """Validate the scope and replace its previous findings."""
        query = select(PeriodSummary)
        if client_id:
            query = query.where(PeriodSummary.client_id == client_id)
        if platform:
            query = query.where(PeriodSummary.platform == platform)
        rows = list(self.session.exec(query).all())

        findings = validate_rows(rows)
        detected_at = self.clock.now()

        stale = delete(ValidationIssue)
        if client_id:
            stale = stale.where(ValidationIssue.client_id == client_id)
        if platform:
            stale = stale.where(ValidationIssue.platform == platform)
        self.session.execute(stale)

        issues = [
            ValidationIssue(
                summary_id=row.id,
                client_id=row.client_id,
                platform=row.platform,
                summary_type=row.summary_type,
                summary_date=row.summary_date,
                kind=kind.value,
                detail=detail,
                detected_at=detected_at,
            )
            for row, kind, detail in findings
        ]
        self.session.add_all(issues)
        self.session.commit()
        for issue in issues:
            self.session.refresh(issue)

        by_kind: Dict[str, int] = defaultdict(int)
        for issue in issues:
            by_kind[issue.kind] += 1
        logger.info(
            f"Validated {len(rows)} summaries: {len(issues)} issues {dict(by_kind)}",
            extra={"client_id": client_id, "platform": platform},
        )
        return issues


def list_validation_issues(
    session: Session,
    client_id: Optional[str] = None,
    platform: Optional[str] = None,
    kind: Optional[str] = None,
) -> List[ValidationIssue]:
    query = select(ValidationIssue)
    if client_id:
        query = query.where(ValidationIssue.client_id == client_id)
    if platform:
        query = query.where(ValidationIssue.platform == platform)
    if kind:
        query = query.where(ValidationIssue.kind == kind)
    query = query.order_by(ValidationIssue.detected_at.desc(), ValidationIssue.id)
    return list(session.exec(query).all())
