"""FunnelSync — Batch Sync Runner.

Refreshes many clients in one job. Clients are independent: one client's
failure is recorded and the batch moves on. A client's platforms run
concurrently, each with its own session; calls to the same vendor still
queue on the shared per-vendor throttle.
"""

import asyncio
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from sqlmodel import Session, select

from funnelsync.config import Settings, settings
from funnelsync.connectors.base import PlatformConnector
from funnelsync.connectors.credentials import CredentialProvider
from funnelsync.core.clock import Clock, system_clock
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import PeriodType, current_period
from funnelsync.core.taxonomy import Platform
from funnelsync.models.store_models import Account
from funnelsync.models.sync_models import BatchResult, SyncResult
from funnelsync.sync.orchestrator import SyncOrchestrator
from funnelsync.sync.throttle import VendorThrottle

logger = get_logger("sync.batch")


class BatchRunner:
    """Runs trigger_sync across clients and platforms."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        connectors: Dict[Platform, PlatformConnector],
        credentials: Optional[CredentialProvider] = None,
        clock: Clock = system_clock,
        config: Settings = settings,
    ):
        self.session_factory = session_factory
        self.connectors = connectors
        self.credentials = credentials
        self.clock = clock
        self.config = config
        self.throttle = VendorThrottle(config.vendor_call_delay_ms)

    def targets(self, client_ids: Optional[Iterable[str]] = None) -> Dict[str, List[Platform]]:
        """client_id → platforms with at least one enabled account."""
        wanted = set(client_ids) if client_ids else None
        with self.session_factory() as session:
            accounts = session.exec(
                select(Account).where(Account.enabled == True)  # noqa: E712
            ).all()

        targets: Dict[str, List[Platform]] = {}
        for account in accounts:
            if wanted is not None and account.client_id not in wanted:
                continue
            platform = Platform(account.platform)
            if platform not in self.connectors:
                continue
            platforms = targets.setdefault(account.client_id, [])
            if platform not in platforms:
                platforms.append(platform)
        return targets

    async def _sync_one(
        self,
        client_id: str,
        platform: Platform,
        period_type: PeriodType,
        period_start: date,
        force_refresh: bool,
    ) -> SyncResult:
        with self.session_factory() as session:
            orchestrator = SyncOrchestrator(
                session,
                self.connectors,
                credentials=self.credentials,
                clock=self.clock,
                throttle=self.throttle,
                config=self.config,
            )
            return await orchestrator.trigger_sync(
                client_id, platform, period_type, period_start, force_refresh
            )

    async def sync_client(
        self,
        client_id: str,
        platforms: List[Platform],
        period_type: PeriodType = PeriodType.MONTHLY,
        period_start: Optional[date] = None,
        force_refresh: bool = False,
    ) -> BatchResult:
        """Sync every platform of one client concurrently."""
        period_type = PeriodType(period_type)
        if period_start is None:
            period_start = current_period(period_type, self.clock.today()).start

        outcomes = await asyncio.gather(
            *(
                self._sync_one(client_id, p, period_type, period_start, force_refresh)
                for p in platforms
            ),
            return_exceptions=True,
        )

        batch = BatchResult()
        for platform, outcome in zip(platforms, outcomes):
            if isinstance(outcome, BaseException):
                key = f"{client_id}/{platform.value}"
                batch.failures[key] = f"{type(outcome).__name__}: {outcome}"
                logger.error(
                    f"Sync failed: {outcome}",
                    extra={"client_id": client_id, "platform": platform.value},
                )
            else:
                batch.results.append(outcome)
        return batch

    async def run(
        self,
        period_type: PeriodType = PeriodType.MONTHLY,
        period_start: Optional[date] = None,
        client_ids: Optional[Iterable[str]] = None,
        force_refresh: bool = False,
    ) -> BatchResult:
        """Sync all (or the given) clients, continuing past failures."""
        targets = self.targets(client_ids)
        logger.info(f"Batch sync starting for {len(targets)} clients ({PeriodType(period_type).value})")

        combined = BatchResult()
        for client_id in sorted(targets):
            batch = await self.sync_client(
                client_id, targets[client_id], period_type, period_start, force_refresh
            )
            combined.results.extend(batch.results)
            combined.failures.update(batch.failures)

        logger.info(
            f"Batch sync done: {combined.ok_count} ok, "
            f"{len(combined.results) - combined.ok_count} degraded, "
            f"{len(combined.failures)} failed"
        )
        return combined
