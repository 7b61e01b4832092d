"""HTTP surface via FastAPI TestClient with swapped dependencies."""

import pytest
from fastapi.testclient import TestClient

from funnelsync.api.deps import get_clock, get_connectors, get_credentials, get_throttle
from funnelsync.connectors.credentials import StaticCredentialProvider
from funnelsync.core.taxonomy import Platform
from funnelsync.database import get_session
from funnelsync.main import app
from funnelsync.sync.throttle import VendorThrottle
from tests.fakes import FakeConnector, raw_record


@pytest.fixture
def client(session, clock, meta_account):
    connector = FakeConnector(
        [
            raw_record("1", spend=100.0, impressions=1000, clicks=50,
                       actions=[("purchase", 1)], values=[("purchase", "200")]),
            raw_record("2", spend=50.0, impressions=500, clicks=25),
        ]
    )

    def _session():
        yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_connectors] = lambda: {Platform.META: connector}
    app.dependency_overrides[get_credentials] = lambda: StaticCredentialProvider(
        {"HOTEL_A_META": "tok"}
    )
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_throttle] = lambda: VendorThrottle(0)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_sync_then_read_archived_summary(client):
    resp = client.post(
        "/sync",
        json={"client_id": "hotel-a", "platform": "meta", "period_type": "monthly",
              "period_start": "2025-08-01"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "refreshed"
    assert body["summary"]["total_spend"] == 150.0
    assert body["states"][-1] == "serve"

    resp = client.get("/summaries/hotel-a/meta/monthly/2025-08-01")
    assert resp.status_code == 200
    assert resp.json()["tier"] == "archive"
    assert resp.json()["summary"]["roas"] == pytest.approx(1.3333, abs=1e-4)


def test_missing_summary_is_404_no_data(client):
    resp = client.get("/summaries/hotel-a/meta/monthly/2025-07-01")
    assert resp.status_code == 404
    assert resp.json()["detail"]["status"] == "no_data"


def test_non_canonical_period_is_400(client):
    assert client.get("/summaries/hotel-a/meta/weekly/2025-08-14").status_code == 400
    resp = client.post(
        "/sync",
        json={"client_id": "hotel-a", "platform": "meta", "period_type": "weekly",
              "period_start": "2025-08-14"},
    )
    assert resp.status_code == 400


def test_unknown_platform_is_rejected(client):
    assert client.get("/summaries/hotel-a/tiktok/monthly/2025-08-01").status_code == 422


def test_snapshot_after_current_period_sync(client):
    assert client.get("/snapshots/hotel-a/meta").status_code == 404

    resp = client.post("/sync", json={"client_id": "hotel-a", "platform": "meta"})
    assert resp.status_code == 200
    assert resp.json()["tier"] == "current"

    resp = client.get("/snapshots/hotel-a/meta", params={"period_type": "monthly"})
    assert resp.status_code == 200
    assert resp.json()["snapshot"]["period_id"] == "2025-09"

    resp = client.get("/summaries/hotel-a/meta/monthly/2025-09-01")
    assert resp.json()["tier"] == "current"


def test_validation_run_and_listing(client, session):
    client.post(
        "/sync",
        json={"client_id": "hotel-a", "platform": "meta", "period_type": "weekly",
              "period_start": "2025-08-11"},
    )
    resp = client.post("/validation/run")
    assert resp.status_code == 200

    resp = client.get("/validation-issues", params={"client_id": "hotel-a"})
    assert resp.status_code == 200
    assert resp.json()["count"] == 0

    assert client.get("/validation-issues", params={"kind": "bogus"}).status_code == 422
