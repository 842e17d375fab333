from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
from fastapi.testclient import TestClient

from gerencia.config import Settings
from gerencia.connectors import MetaApiError
from gerencia.db import GerenciaDB
from gerencia.repo import Repo
from gerencia.web.app import create_app


class FakeAds:
    def __init__(self, responses: dict[str, Any]):
        self.responses = responses
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def invoke(self, action: str, **kwargs: Any) -> dict[str, Any]:
        self.calls.append((action, kwargs))
        res = self.responses.get(action)
        if isinstance(res, Exception):
            raise res
        if res is None:
            raise ValueError("Invalid action")
        return res


def _client(tmp_path: Path, fake: FakeAds) -> tuple[Repo, TestClient]:
    db_path = tmp_path / "gerencia.sqlite3"
    GerenciaDB(db_path).init()
    settings = Settings(db_path=db_path, web_host="127.0.0.1", web_port=0)
    app = create_app(settings, meta_client_factory=lambda _token: fake)
    return Repo(db_path), TestClient(app)


def test_meta_ads_proxy_maps_camel_case_body(tmp_path: Path) -> None:
    fake = FakeAds({"pause-campaign": {"success": True}})
    _, client = _client(tmp_path, fake)

    resp = client.post("/meta-ads", json={"action": "pause-campaign", "accessToken": "t", "campaignId": "c1"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert fake.calls[0][0] == "pause-campaign"
    assert fake.calls[0][1]["campaign_id"] == "c1"


def test_meta_ads_proxy_errors(tmp_path: Path) -> None:
    fake = FakeAds({"get-ads": MetaApiError("Invalid OAuth access token.", code=190)})
    _, client = _client(tmp_path, fake)

    assert client.post("/meta-ads", json={"action": "get-ads"}).status_code == 400
    bad = client.post("/meta-ads", json={"action": "nope", "accessToken": "t"})
    assert bad.status_code == 400
    assert bad.json() == {"success": False, "error": "Invalid action"}
    graph = client.post("/meta-ads", json={"action": "get-ads", "accessToken": "t", "adAccountId": "act_1"})
    assert graph.status_code == 400
    assert graph.json()["error"] == "Invalid OAuth access token."


def test_campaign_metrics_merges_insights_and_attribution(tmp_path: Path) -> None:
    fake = FakeAds(
        {
            "get-campaigns": {
                "campaigns": [
                    {"id": "c1", "name": "Topo", "status": "ACTIVE", "daily_budget": "10000"},
                    {"id": "c2", "name": "Antiga", "status": "PAUSED"},
                ]
            },
            "get-campaign-insights": {
                "insights": [
                    {
                        "campaign_id": "c1",
                        "spend": "50",
                        "impressions": "1000",
                        "clicks": "20",
                        "actions": [{"action_type": "purchase", "value": "1"}],
                        "action_values": [{"action_type": "purchase", "value": "97"}],
                    }
                ]
            },
        }
    )
    repo, client = _client(tmp_path, fake)
    w = repo.create_webhook(user_id="u1", platform="hotmart", name="x")
    for _ in range(2):
        client.post(
            f"/webhook-receiver?token={w['token']}",
            json={"status": "approved", "amount": 100, "tracking": {"utm_campaign": "Topo|c1"}},
        )

    resp = client.post(
        "/campaign-metrics",
        json={"accessToken": "t", "adAccountId": "act_1", "userId": "u1"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["level"] == "campaign"
    assert [e["id"] for e in body["entities"]] == ["c1"]
    c1 = body["entities"][0]
    assert c1["budget"] == 100.0
    assert c1["budget_type"] == "daily"
    # Tracked checkout sales replace the pixel numbers.
    assert c1["sales"] == 2
    assert c1["revenue"] == 200.0
    assert c1["cpa"] == 25.0
    assert c1["roi"] == 4.0


def test_campaign_metrics_survives_missing_insights(tmp_path: Path) -> None:
    fake = FakeAds(
        {
            "get-adsets": {"adsets": [{"id": "s1", "status": "ACTIVE", "campaign_id": "c1"}]},
            "get-adset-insights": MetaApiError("rate limited", code=17),
        }
    )
    _, client = _client(tmp_path, fake)
    resp = client.post("/campaign-metrics", json={"accessToken": "t", "adAccountId": "1", "level": "adset"})
    assert resp.status_code == 200
    entities = resp.json()["entities"]
    assert len(entities) == 1
    assert entities[0]["cpa"] is None
    assert entities[0]["spent"] == 0.0


def test_campaign_metrics_listing_timeout_is_json_500(tmp_path: Path) -> None:
    fake = FakeAds({"get-campaigns": httpx.ConnectTimeout("timed out")})
    _, client = _client(tmp_path, fake)
    resp = client.post("/campaign-metrics", json={"accessToken": "t", "adAccountId": "act_1"})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "timed out"}


def test_campaign_metrics_insights_timeout_degrades_to_empty_metrics(tmp_path: Path) -> None:
    fake = FakeAds(
        {
            "get-campaigns": {"campaigns": [{"id": "c1", "name": "Topo", "status": "ACTIVE"}]},
            "get-campaign-insights": httpx.ReadTimeout("read timed out"),
        }
    )
    _, client = _client(tmp_path, fake)
    resp = client.post("/campaign-metrics", json={"accessToken": "t", "adAccountId": "act_1", "onlyWithData": False})
    assert resp.status_code == 200
    (c1,) = resp.json()["entities"]
    assert c1["id"] == "c1"
    assert c1["spent"] == 0.0
    assert c1["cpa"] is None
