"""Vendor connectors against mocked HTTP transports."""

import asyncio
import json
from datetime import date

import httpx
import pytest

from funnelsync.connectors.google.endpoints import GoogleAdsConnector
from funnelsync.connectors.meta.endpoints import MetaConnector
from funnelsync.core.errors import (
    ConnectorError,
    CredentialError,
    InvalidDateRange,
    RateLimited,
)
from funnelsync.core.periods import PeriodRange
from funnelsync.models.raw_models import Grain

AUGUST = PeriodRange(start=date(2025, 8, 1), end=date(2025, 8, 31))


def _json(status, body, headers=None):
    return httpx.Response(status, json=body, headers=headers or {})


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------

def test_meta_fetch_paginates_and_passes_token(meta_account):
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        if "after=" not in str(request.url):
            return _json(
                200,
                {
                    "data": [
                        {
                            "campaign_id": "1",
                            "campaign_name": "Summer",
                            "spend": "100.00",
                            "impressions": "1000",
                            "clicks": "40",
                            "actions": [{"action_type": "purchase", "value": "1"}],
                            "action_values": [{"action_type": "purchase", "value": "200"}],
                        }
                    ],
                    "paging": {"next": "https://graph.facebook.com/v21.0/act_123/insights?after=abc"},
                },
            )
        return _json(
            200,
            {"data": [{"campaign_id": "2", "campaign_name": "Winter", "spend": "50"}]},
        )

    connector = MetaConnector(transport=httpx.MockTransport(handler))
    records = asyncio.run(connector.fetch_insights(meta_account, "tok-1", AUGUST))

    assert [r.campaign_id for r in records] == ["1", "2"]
    assert records[0].spend == 100.0
    assert records[0].actions[0].action_type == "purchase"
    assert records[1].actions == []

    first = seen[0].url
    assert first.path.endswith("/act_123/insights")
    assert first.params["access_token"] == "tok-1"
    assert first.params["level"] == "campaign"
    assert first.params["time_increment"] == "all_days"
    assert json.loads(first.params["time_range"]) == {"since": "2025-08-01", "until": "2025-08-31"}


def test_meta_daily_grain(meta_account):
    def handler(request):
        assert request.url.params["time_increment"] == "1"
        return _json(200, {"data": []})

    connector = MetaConnector(transport=httpx.MockTransport(handler))
    assert asyncio.run(connector.fetch_insights(meta_account, "t", AUGUST, Grain.DAILY)) == []


@pytest.mark.parametrize(
    "status,error,headers,expected",
    [
        (400, {"code": 190, "message": "Session expired"}, {}, CredentialError),
        (403, {"code": 1, "message": "Forbidden"}, {}, CredentialError),
        (403, {"code": 4, "message": "Application request limit reached"}, {}, RateLimited),
        (400, {"code": 17, "message": "User request limit reached"}, {}, RateLimited),
        (429, {"message": "Too many"}, {"retry-after": "7"}, RateLimited),
        (400, {"code": 100, "message": "Invalid time_range"}, {}, InvalidDateRange),
        (500, {"code": 1, "message": "Unknown error"}, {}, ConnectorError),
    ],
)
def test_meta_errors_are_classified(meta_account, status, error, headers, expected):
    def handler(request):
        return _json(status, {"error": error}, headers)

    connector = MetaConnector(transport=httpx.MockTransport(handler))
    with pytest.raises(expected):
        asyncio.run(connector.fetch_insights(meta_account, "t", AUGUST))


def test_meta_retry_after_is_carried(meta_account):
    def handler(request):
        return _json(429, {"error": {"message": "slow down"}}, {"retry-after": "7"})

    connector = MetaConnector(transport=httpx.MockTransport(handler))
    with pytest.raises(RateLimited) as exc:
        asyncio.run(connector.fetch_insights(meta_account, "t", AUGUST))
    assert exc.value.retry_after == 7.0


def test_meta_transport_failure_is_connector_error(meta_account):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    connector = MetaConnector(transport=httpx.MockTransport(handler))
    with pytest.raises(ConnectorError):
        asyncio.run(connector.fetch_insights(meta_account, "t", AUGUST))


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------

def _google_handler(seen):
    def handler(request: httpx.Request):
        seen.append(request)
        query = json.loads(request.content)["query"]
        if "conversion_action_name" in query:
            return _json(
                200,
                [
                    {
                        "results": [
                            {
                                "campaign": {"id": "11", "name": "Search Brand"},
                                "segments": {"conversionActionName": "Rezerwacja"},
                                "metrics": {"allConversions": 2.0, "allConversionsValue": 800.0},
                            },
                            {
                                "campaign": {"id": "11", "name": "Search Brand"},
                                "segments": {"conversionActionName": "Step 1 w BE"},
                                "metrics": {"allConversions": 30.0, "allConversionsValue": 0},
                            },
                        ]
                    }
                ],
            )
        return _json(
            200,
            [
                {
                    "results": [
                        {
                            "campaign": {"id": "11", "name": "Search Brand"},
                            "metrics": {
                                "costMicros": "125500000",
                                "impressions": "2000",
                                "clicks": "80",
                                "allConversions": 32.0,
                            },
                        }
                    ]
                }
            ],
        )

    return handler


def test_google_fetch_joins_metrics_and_breakdown(google_account):
    seen = []
    connector = GoogleAdsConnector(
        transport=httpx.MockTransport(_google_handler(seen)), developer_token="dev-tok"
    )
    [record] = asyncio.run(connector.fetch_insights(google_account, "bearer-1", AUGUST))

    assert record.campaign_id == "11"
    assert record.spend == 125.5
    assert record.impressions == 2000
    assert record.reported_conversions == 32.0
    assert {a.action_type for a in record.actions} == {"Rezerwacja", "Step 1 w BE"}

    request = seen[0]
    assert request.url.path.endswith("/customers/1234567890/googleAds:searchStream")
    assert request.headers["authorization"] == "Bearer bearer-1"
    assert request.headers["developer-token"] == "dev-tok"
    assert request.headers["login-customer-id"] == "9990001111"
    assert "BETWEEN '2025-08-01' AND '2025-08-31'" in json.loads(request.content)["query"]


@pytest.mark.parametrize(
    "status,error,expected",
    [
        (401, {"status": "UNAUTHENTICATED", "message": "bad token"}, CredentialError),
        (403, {"status": "PERMISSION_DENIED", "message": "no access"}, CredentialError),
        (429, {"status": "RESOURCE_EXHAUSTED", "message": "quota"}, RateLimited),
        (400, {"status": "INVALID_ARGUMENT", "message": "bad date range"}, InvalidDateRange),
        (503, {"status": "UNAVAILABLE", "message": "try later"}, ConnectorError),
    ],
)
def test_google_errors_are_classified(google_account, status, error, expected):
    def handler(request):
        return _json(status, [{"error": error}])

    connector = GoogleAdsConnector(transport=httpx.MockTransport(handler))
    with pytest.raises(expected):
        asyncio.run(connector.fetch_insights(google_account, "t", AUGUST))


# ---------------------------------------------------------------------------
# Malformed success bodies
# ---------------------------------------------------------------------------

def _html(request):
    return httpx.Response(
        200, text="<html>Gateway login</html>", headers={"content-type": "text/html"}
    )


def test_meta_non_json_body_is_connector_error(meta_account):
    connector = MetaConnector(transport=httpx.MockTransport(_html))
    with pytest.raises(ConnectorError, match="non-JSON"):
        asyncio.run(connector.fetch_insights(meta_account, "t", AUGUST))


def test_google_non_json_body_is_connector_error(google_account):
    connector = GoogleAdsConnector(transport=httpx.MockTransport(_html))
    with pytest.raises(ConnectorError, match="non-JSON"):
        asyncio.run(connector.fetch_insights(google_account, "t", AUGUST))
