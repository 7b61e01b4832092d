"""Shared fixtures: in-memory database, pinned clock, fast sync settings."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from funnelsync.config import Settings
from funnelsync.core.clock import FixedClock
from funnelsync.models import store_models  # noqa: F401
from funnelsync.models.store_models import Account


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    # Mid-September 2025: August is closed, September is the open month
    return FixedClock(datetime(2025, 9, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def fast_settings():
    return Settings(
        rate_limit_base_delay=0.0,
        rate_limit_max_attempts=3,
        vendor_call_delay_ms=0,
        request_timeout_seconds=2.0,
        scheduler_enabled=False,
    )


@pytest.fixture
def meta_account(session):
    account = Account(
        client_id="hotel-a",
        platform="meta",
        account_id="act_123",
        credential_ref="HOTEL_A_META",
    )
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


@pytest.fixture
def google_account(session):
    account = Account(
        client_id="hotel-a",
        platform="google",
        account_id="123-456-7890",
        credential_ref="HOTEL_A_GOOGLE",
        manager_account_id="999-000-1111",
    )
    session.add(account)
    session.commit()
    session.refresh(account)
    return account
