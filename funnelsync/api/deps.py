"""FunnelSync — Route Dependencies.

Connectors, credentials and the clock are resolved through FastAPI
dependencies so they can be swapped via `app.dependency_overrides`.
"""

from typing import Callable, Dict

from fastapi import Depends
from sqlmodel import Session

from funnelsync.config import settings
from funnelsync.connectors.base import PlatformConnector
from funnelsync.connectors.credentials import CredentialProvider, EnvCredentialProvider
from funnelsync.connectors.google.endpoints import GoogleAdsConnector
from funnelsync.connectors.meta.endpoints import MetaConnector
from funnelsync.core.clock import Clock, system_clock
from funnelsync.core.taxonomy import Platform
from funnelsync.database import engine, get_session
from funnelsync.sync.orchestrator import SyncOrchestrator
from funnelsync.sync.throttle import VendorThrottle

# One throttle per process: vendor calls from concurrent requests share it
shared_throttle = VendorThrottle(settings.vendor_call_delay_ms)


def default_connectors() -> Dict[Platform, PlatformConnector]:
    return {
        Platform.META: MetaConnector(),
        Platform.GOOGLE: GoogleAdsConnector(),
    }


def get_connectors() -> Dict[Platform, PlatformConnector]:
    return default_connectors()


def get_credentials() -> CredentialProvider:
    return EnvCredentialProvider()


def get_clock() -> Clock:
    return system_clock


def get_throttle() -> VendorThrottle:
    return shared_throttle


def get_session_factory() -> Callable[[], Session]:
    return lambda: Session(engine)


def get_orchestrator(
    session: Session = Depends(get_session),
    connectors: Dict[Platform, PlatformConnector] = Depends(get_connectors),
    credentials: CredentialProvider = Depends(get_credentials),
    clock: Clock = Depends(get_clock),
    throttle: VendorThrottle = Depends(get_throttle),
) -> SyncOrchestrator:
    return SyncOrchestrator(
        session,
        connectors,
        credentials=credentials,
        clock=clock,
        throttle=throttle,
    )
