"""FunnelSync — Sync Orchestrator.

Drives one (client, platform, period) request through:

  REQUESTED → CACHE_CHECK → CACHE_HIT → SERVE
                          → CACHE_MISS → FETCHING → PARSING → AGGREGATING
                                       → PERSISTING → SERVE
  any vendor failure → DEGRADED → SERVE (stale) or no_data

Open periods live in the current-period cache; closed periods are written
to the permanent archive and their cache row is dropped. Nothing is
written unless a full fetch + parse + aggregate cycle succeeded.
"""

import asyncio
import time
from datetime import date
from typing import Dict, List, Optional

from sqlmodel import Session, select

from funnelsync.config import Settings, settings
from funnelsync.connectors.base import PlatformConnector
from funnelsync.connectors.credentials import CredentialProvider, EnvCredentialProvider
from funnelsync.core.clock import Clock, as_utc, system_clock
from funnelsync.core.errors import (
    ConnectorError,
    CredentialError,
    InvalidDateRange,
    RateLimited,
)
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import (
    Period,
    PeriodType,
    current_period,
    fetch_window,
    is_period_closed,
    lookback_floor,
    period_for,
    validate_range,
)
from funnelsync.core.taxonomy import Platform, live_data_source
from funnelsync.models.funnel_models import CampaignMetrics
from funnelsync.models.raw_models import RawInsightRecord
from funnelsync.models.store_models import Account, CurrentPeriodCache, PeriodSummary
from funnelsync.models.sync_models import SyncResult, SyncState, SyncStatus
from funnelsync.aggregator import aggregate
from funnelsync.parser.conversion_parser import parse_records
from funnelsync.parser.overrides import load_overrides
from funnelsync.store.cache_store import CacheStore, summary_from_archive, summary_from_cache
from funnelsync.store.freshness import FreshnessPolicy
from funnelsync.sync.throttle import VendorThrottle

logger = get_logger("sync.orchestrator")

CURRENT_TIER = "current"
ARCHIVE_TIER = "archive"


class SyncOrchestrator:
    """Cache-or-fetch coordinator for period summaries."""

    def __init__(
        self,
        session: Session,
        connectors: Dict[Platform, PlatformConnector],
        credentials: Optional[CredentialProvider] = None,
        clock: Clock = system_clock,
        throttle: Optional[VendorThrottle] = None,
        config: Settings = settings,
    ):
        self.session = session
        self.store = CacheStore(session)
        self.connectors = connectors
        self.credentials = credentials or EnvCredentialProvider()
        self.clock = clock
        self.config = config
        self.throttle = throttle or VendorThrottle(config.vendor_call_delay_ms)
        self.freshness = FreshnessPolicy.from_hours(config.cache_freshness_hours)

    # ── Lookups ──

    def _connector(self, platform: Platform) -> PlatformConnector:
        try:
            return self.connectors[platform]
        except KeyError:
            raise ConnectorError(f"No connector configured for {platform.value}") from None

    def _accounts(self, client_id: str, platform: Platform) -> List[Account]:
        return list(
            self.session.exec(
                select(Account).where(
                    Account.client_id == client_id,
                    Account.platform == platform.value,
                    Account.enabled == True,  # noqa: E712
                )
            ).all()
        )

    def _validate_period(self, period: Period, today: date, lookback_months: int) -> None:
        if period.start > today:
            raise InvalidDateRange(f"Period {period.period_id} has not started yet")
        if period.end <= today:
            validate_range(period.start, period.end, today, lookback_months)
        elif period.start < lookback_floor(today, lookback_months):
            # Open week running into next month: only the lookback check applies
            raise InvalidDateRange(
                f"Period {period.period_id} precedes the {lookback_months}-month lookback limit"
            )

    # ── Result builders ──

    def _result(
        self,
        client_id: str,
        platform: Platform,
        period: Period,
        tier: str,
        status: SyncStatus,
        states: List[SyncState],
        source=None,
        stale: bool = False,
        error: Optional[str] = None,
    ) -> SyncResult:
        summary = None
        data_source = ""
        last_updated = None
        if isinstance(source, CurrentPeriodCache):
            summary = summary_from_cache(source)
            data_source = (source.cache_data or {}).get("data_source", "")
            last_updated = as_utc(source.last_updated)
        elif isinstance(source, PeriodSummary):
            summary = summary_from_archive(source)
            data_source = source.data_source
            last_updated = as_utc(source.last_updated)

        return SyncResult(
            client_id=client_id,
            platform=platform.value,
            period_type=period.period_type.value,
            period_id=period.period_id,
            period_start=period.start,
            period_end=period.end,
            status=status,
            tier=tier,
            summary=summary,
            data_source=data_source,
            last_updated=last_updated,
            stale=stale,
            error=error,
            states=states,
        )

    def _last_known_good(self, client_id: str, platform: Platform, period: Period, tier: str):
        """Stored value for the period in either tier, regardless of age."""
        if tier == ARCHIVE_TIER:
            row = self.store.get_summary(
                client_id, platform.value, period.period_type.value, period.start
            )
            if row is not None:
                return row
        return self.store.get_cache_entry(
            client_id, platform.value, period.period_type.value, period.period_id
        )

    def _degrade(
        self,
        client_id: str,
        platform: Platform,
        period: Period,
        tier: str,
        states: List[SyncState],
        error: str,
        credential_failure: bool = False,
    ) -> SyncResult:
        states.append(SyncState.DEGRADED)
        fallback = self._last_known_good(client_id, platform, period, tier)
        extra = {"client_id": client_id, "platform": platform.value, "period_id": period.period_id}

        if credential_failure:
            status = SyncStatus.CREDENTIAL_ERROR
        elif fallback is not None:
            status = SyncStatus.DEGRADED
        else:
            status = SyncStatus.NO_DATA

        if fallback is None:
            message = f"No data available for {period.period_id}: {error}"
            logger.warning(message, extra=extra)
            return self._result(
                client_id, platform, period, tier, status, states, error=message
            )

        logger.warning(f"Serving stale data: {error}", extra=extra)
        states.append(SyncState.SERVE)
        return self._result(
            client_id, platform, period, tier, status, states,
            source=fallback, stale=True, error=error,
        )

    # ── Fetching ──

    async def _fetch_account(
        self, connector: PlatformConnector, account: Account, credential: str, period: Period
    ) -> List[RawInsightRecord]:
        """One account's fetch, retried with exponential backoff on RateLimited."""
        window = fetch_window(period, self.clock.today())
        attempts = max(1, self.config.rate_limit_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                async with self.throttle.slot(connector.platform.value):
                    return await connector.fetch_insights(account, credential, window)
            except RateLimited as e:
                if attempt == attempts:
                    raise
                wait = e.retry_after or self.config.rate_limit_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Rate limited. Retrying in {wait}s (attempt {attempt}/{attempts})",
                    extra={"client_id": account.client_id, "platform": account.platform},
                )
                await asyncio.sleep(wait)
        return []

    async def _fetch_and_parse(
        self,
        connector: PlatformConnector,
        accounts: List[Account],
        period: Period,
        states: List[SyncState],
    ) -> List[CampaignMetrics]:
        fetched = []
        for account in accounts:
            credential = self.credentials.get_credential(account)
            records = await self._fetch_account(connector, account, credential, period)
            fetched.append((account, records))

        states.append(SyncState.PARSING)
        campaigns: List[CampaignMetrics] = []
        for account, records in fetched:
            overrides = load_overrides(
                self.session, account.client_id, account.platform, account.account_id
            )
            campaigns.extend(parse_records(connector.platform, records, overrides))
        return campaigns

    # ── Public API ──

    async def trigger_sync(
        self,
        client_id: str,
        platform: Platform | str,
        period_type: PeriodType | str,
        period_start: date,
        force_refresh: bool = False,
    ) -> SyncResult:
        """Serve a period summary from cache, or refresh it from the vendor.

        Raises InvalidDateRange for non-canonical or out-of-range periods;
        every vendor failure is reported in the result instead.
        """
        started = time.perf_counter()
        states = [SyncState.REQUESTED]
        platform = Platform(platform)
        period = period_for(PeriodType(period_type), period_start)
        connector = self._connector(platform)
        today = self.clock.today()
        self._validate_period(period, today, connector.lookback_months)

        closed = is_period_closed(period, today, self.config.reporting_lag_days)
        tier = ARCHIVE_TIER if closed else CURRENT_TIER
        extra = {"client_id": client_id, "platform": platform.value, "period_id": period.period_id}

        # Cache check
        states.append(SyncState.CACHE_CHECK)
        if not force_refresh:
            if tier == ARCHIVE_TIER:
                hit = self.store.get_summary(
                    client_id, platform.value, period.period_type.value, period.start
                )
            else:
                hit = self.store.get_cache_entry(
                    client_id, platform.value, period.period_type.value, period.period_id
                )
                if hit is not None and not self.freshness.is_fresh(
                    hit.last_updated, self.clock.now()
                ):
                    logger.info("Cache entry stale, refreshing", extra=extra)
                    hit = None
            if hit is not None:
                states += [SyncState.CACHE_HIT, SyncState.SERVE]
                return self._result(
                    client_id, platform, period, tier, SyncStatus.CACHE_HIT, states, source=hit
                )
        states.append(SyncState.CACHE_MISS)

        accounts = self._accounts(client_id, platform)
        if not accounts:
            return self._degrade(
                client_id, platform, period, tier, states,
                f"no enabled {platform.value} account for client {client_id}",
            )

        # Fetch + parse
        states.append(SyncState.FETCHING)
        try:
            campaigns = await asyncio.wait_for(
                self._fetch_and_parse(connector, accounts, period, states),
                timeout=self.config.request_timeout_seconds,
            )
        except CredentialError as e:
            return self._degrade(
                client_id, platform, period, tier, states,
                f"credential error: {e}", credential_failure=True,
            )
        except RateLimited as e:
            return self._degrade(
                client_id, platform, period, tier, states, f"rate limited: {e}"
            )
        except ConnectorError as e:
            return self._degrade(
                client_id, platform, period, tier, states, f"vendor error: {e}"
            )
        except asyncio.TimeoutError:
            return self._degrade(
                client_id, platform, period, tier, states,
                f"vendor did not answer within {self.config.request_timeout_seconds}s; "
                "data may be outdated",
            )

        # Aggregate
        states.append(SyncState.AGGREGATING)
        summary = aggregate(campaigns)
        data_source = live_data_source(platform, proxied=bool(summary.proxied_steps)).value

        # Persist
        states.append(SyncState.PERSISTING)
        now = self.clock.now()
        if tier == ARCHIVE_TIER:
            stored = self.store.upsert_summary(
                client_id, platform.value, period, summary, data_source, now
            )
            self.store.delete_cache_entry(
                client_id, platform.value, period.period_type.value, period.period_id
            )
        else:
            stored = self.store.upsert_cache_entry(
                client_id, platform.value, period, summary, data_source, now
            )

        states.append(SyncState.SERVE)
        extra["duration_ms"] = round((time.perf_counter() - started) * 1000, 1)
        logger.info(f"Sync complete ({tier}, {len(campaigns)} campaigns)", extra=extra)
        result = self._result(
            client_id, platform, period, tier, SyncStatus.REFRESHED, states, source=stored
        )
        # Archive rows do not store proxied_steps
        result.summary.proxied_steps = summary.proxied_steps
        return result

    def get_period_summary(
        self,
        client_id: str,
        platform: Platform | str,
        period_type: PeriodType | str,
        period_start: date,
    ) -> Optional[PeriodSummary]:
        """Archived summary for a closed period, if one exists."""
        return self.store.get_summary(
            client_id, Platform(platform).value, PeriodType(period_type).value, period_start
        )

    def get_current_period_snapshot(
        self,
        client_id: str,
        platform: Platform | str,
        period_type: PeriodType | str = PeriodType.MONTHLY,
    ) -> Optional[CurrentPeriodCache]:
        """Cached snapshot of the in-progress period, if one exists."""
        period = current_period(PeriodType(period_type), self.clock.today())
        return self.store.get_cache_entry(
            client_id, Platform(platform).value, period.period_type.value, period.period_id
        )
