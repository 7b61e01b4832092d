"""FunnelSync — Cache Store.

Two tiers keyed by client, platform and period:
  - current_period_cache   the in-progress week/month, overwritten per refresh
  - period_summaries       permanent archive of closed periods

Both writes are keyed upserts executed as a single
INSERT … ON CONFLICT DO UPDATE, so concurrent writers converge on one row
with a stable id. For the archive the newest `last_updated` wins.
"""

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from funnelsync.core.errors import StoreConflict
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import Period
from funnelsync.models.funnel_models import SummaryFields
from funnelsync.models.store_models import CurrentPeriodCache, PeriodSummary

logger = get_logger("store")

SUMMARY_KEY = ("client_id", "summary_type", "summary_date", "platform")
CACHE_KEY = ("client_id", "platform", "period_type", "period_id")

# Summary columns rewritten on conflict
SUMMARY_FIELDS = tuple(
    f for f in SummaryFields.model_fields if f != "proxied_steps"
) + ("data_source", "last_updated")


def _insert_for(session: Session):
    """Dialect-specific insert() that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise StoreConflict(f"Keyed upsert not supported on dialect {dialect!r}")


def summary_from_cache(entry: CurrentPeriodCache) -> SummaryFields:
    return SummaryFields.model_validate(entry.cache_data or {})


def summary_from_archive(row: PeriodSummary) -> SummaryFields:
    return SummaryFields.model_validate(row.model_dump())


class CacheStore:
    """Reads and keyed writes for both storage tiers."""

    def __init__(self, session: Session):
        self.session = session

    # ── Current-period tier ──

    def get_cache_entry(
        self, client_id: str, platform: str, period_type: str, period_id: str
    ) -> Optional[CurrentPeriodCache]:
        entry = self.session.exec(
            select(CurrentPeriodCache).where(
                CurrentPeriodCache.client_id == client_id,
                CurrentPeriodCache.platform == platform,
                CurrentPeriodCache.period_type == period_type,
                CurrentPeriodCache.period_id == period_id,
            )
        ).first()
        return entry

    def latest_cache_entry(
        self, client_id: str, platform: str, period_type: str
    ) -> Optional[CurrentPeriodCache]:
        """Most recent cache row for a client/platform/period type."""
        entry = self.session.exec(
            select(CurrentPeriodCache)
            .where(
                CurrentPeriodCache.client_id == client_id,
                CurrentPeriodCache.platform == platform,
                CurrentPeriodCache.period_type == period_type,
            )
            .order_by(CurrentPeriodCache.period_start.desc())
        ).first()
        return entry

    def list_cache_entries(self) -> List[CurrentPeriodCache]:
        return list(self.session.exec(select(CurrentPeriodCache)).all())

    def upsert_cache_entry(
        self,
        client_id: str,
        platform: str,
        period: Period,
        summary: SummaryFields,
        data_source: str,
        last_updated: datetime,
    ) -> CurrentPeriodCache:
        """Overwrite the cache row for this period."""
        cache_data = summary.model_dump(mode="json")
        cache_data["data_source"] = data_source
        cache_data["period_end"] = period.end.isoformat()

        values = {
            "client_id": client_id,
            "platform": platform,
            "period_type": period.period_type.value,
            "period_id": period.period_id,
            "period_start": period.start,
            "cache_data": cache_data,
            "last_updated": last_updated,
        }
        insert = _insert_for(self.session)
        stmt = insert(CurrentPeriodCache).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(CACHE_KEY),
            set_={
                "period_start": stmt.excluded.period_start,
                "cache_data": stmt.excluded.cache_data,
                "last_updated": stmt.excluded.last_updated,
            },
        )
        self._execute(stmt, f"cache {client_id}/{platform}/{period.period_id}")
        logger.info(
            "Current-period cache updated",
            extra={"client_id": client_id, "platform": platform, "period_id": period.period_id},
        )
        return self.get_cache_entry(
            client_id, platform, period.period_type.value, period.period_id
        )

    def delete_cache_entry(
        self, client_id: str, platform: str, period_type: str, period_id: str
    ) -> bool:
        entry = self.get_cache_entry(client_id, platform, period_type, period_id)
        if entry is None:
            return False
        try:
            self.session.delete(entry)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreConflict(f"Failed to drop cache row {period_id}: {e}") from e
        return True

    # ── Archive tier ──

    def get_summary(
        self, client_id: str, platform: str, summary_type: str, summary_date: date
    ) -> Optional[PeriodSummary]:
        row = self.session.exec(
            select(PeriodSummary).where(
                PeriodSummary.client_id == client_id,
                PeriodSummary.platform == platform,
                PeriodSummary.summary_type == summary_type,
                PeriodSummary.summary_date == summary_date,
            )
        ).first()
        return row

    def list_summaries(
        self,
        client_id: Optional[str] = None,
        platform: Optional[str] = None,
        summary_type: Optional[str] = None,
    ) -> List[PeriodSummary]:
        query = select(PeriodSummary)
        if client_id:
            query = query.where(PeriodSummary.client_id == client_id)
        if platform:
            query = query.where(PeriodSummary.platform == platform)
        if summary_type:
            query = query.where(PeriodSummary.summary_type == summary_type)
        query = query.order_by(PeriodSummary.summary_date)
        return list(self.session.exec(query).all())

    def upsert_summary(
        self,
        client_id: str,
        platform: str,
        period: Period,
        summary: SummaryFields,
        data_source: str,
        last_updated: datetime,
    ) -> PeriodSummary:
        """Insert or update the archive row for a closed period.

        An older write arriving after a newer one leaves the row untouched.
        """
        fields = summary.model_dump(exclude={"proxied_steps"})
        values = {
            "client_id": client_id,
            "platform": platform,
            "summary_type": period.period_type.value,
            "summary_date": period.start,
            **fields,
            "data_source": data_source,
            "last_updated": last_updated,
        }
        insert = _insert_for(self.session)
        stmt = insert(PeriodSummary).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(SUMMARY_KEY),
            set_={f: getattr(stmt.excluded, f) for f in SUMMARY_FIELDS},
            where=PeriodSummary.last_updated <= stmt.excluded.last_updated,
        )
        self._execute(stmt, f"summary {client_id}/{platform}/{period.period_id}")
        logger.info(
            f"Archived {period.period_type.value} summary ({data_source})",
            extra={"client_id": client_id, "platform": platform, "period_id": period.period_id},
        )
        return self.get_summary(
            client_id, platform, period.period_type.value, period.start
        )

    # ── Internals ──

    def _execute(self, stmt, what: str) -> None:
        try:
            self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Store write failed for {what}: {e}")
            raise StoreConflict(f"Store write failed for {what}: {e}") from e
