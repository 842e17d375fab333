from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from gerencia.config import Settings
from gerencia.db import GerenciaDB
from gerencia.repo import Repo
from gerencia.web.app import create_app


def _settings_for_db(db_path: Path) -> Settings:
    return Settings(db_path=db_path, web_host="127.0.0.1", web_port=0)


def _setup(tmp_path: Path) -> tuple[Repo, TestClient]:
    db_path = tmp_path / "gerencia.sqlite3"
    GerenciaDB(db_path).init()
    return Repo(db_path), TestClient(create_app(_settings_for_db(db_path)))


def test_lowify_waiting_payment_end_to_end(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    w = repo.create_webhook(user_id="u1", platform="Lowify", name="loja")

    resp = client.post(
        f"/webhook-receiver?token={w['token']}",
        json={
            "status": "waiting_payment",
            "order_id": "ord-1",
            "sale_amount": 197,
            "buyer": {"name": "Carla", "email": "carla@example.com"},
            "offer": {"id": "off-9", "name": "Mentoria"},
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True

    sale = repo.get_sale(body["sale_id"])
    assert sale is not None
    assert sale["user_id"] == "u1"
    assert sale["webhook_id"] == w["id"]
    assert sale["platform"] == "lowify"
    assert sale["status"] == "pending"
    assert sale["amount"] == 197
    assert sale["currency"] == "BRL"
    assert sale["customer_email"] == "carla@example.com"
    assert sale["product_name"] == "Mentoria"
    assert sale["raw_data"]["order_id"] == "ord-1"


def test_inactive_webhook_is_rejected_without_writing(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    w = repo.create_webhook(user_id="u1", platform="hotmart", name="x")
    repo.set_webhook_status(w["id"], "inactive")
    before = repo.count_sales()

    resp = client.post(f"/webhook-receiver?token={w['token']}", json={"status": "approved", "amount": 10})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Webhook configuration not found"}
    assert repo.count_sales() == before


def test_missing_or_unknown_token_is_rejected(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    repo.create_webhook(user_id="u1", platform="hotmart", name="x")

    assert client.post("/webhook-receiver?platform=hotmart", json={"status": "paid"}).status_code == 400
    assert client.post("/webhook-receiver?token=nope", json={"status": "paid"}).status_code == 400
    assert repo.count_sales() == 0


def test_same_transaction_id_on_two_tokens_stays_per_tenant(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    w1 = repo.create_webhook(user_id="u1", platform="kiwify", name="a")
    w2 = repo.create_webhook(user_id="u2", platform="hotmart", name="b")
    payload = {"transaction_id": "TX-1", "status": "approved", "amount": 50}

    r1 = client.post(f"/webhook-receiver?token={w1['token']}", json=payload)
    r2 = client.post("/webhook-receiver", json=payload, headers={"x-webhook-token": w2["token"]})
    assert r1.status_code == 200
    assert r2.status_code == 200

    u1 = repo.list_sales("u1")
    u2 = repo.list_sales("u2")
    assert len(u1) == 1 and len(u2) == 1
    assert u1[0]["platform"] == "kiwify"
    assert u2[0]["platform"] == "hotmart"
    assert u1[0]["transaction_id"] == u2[0]["transaction_id"] == "TX-1"


def test_explicit_platform_wins_and_resends_still_insert(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    w = repo.create_webhook(user_id="u1", platform="hotmart", name="x")
    payload = {"transaction_id": "T", "status": "purchase", "payment": {"amount": "20.00"}}

    for _ in range(2):
        resp = client.post(f"/webhook-receiver?token={w['token']}&platform=Braip", json=payload)
        assert resp.status_code == 200

    rows = repo.list_sales("u1")
    assert len(rows) == 2
    assert {r["platform"] for r in rows} == {"braip"}
    assert {r["status"] for r in rows} == {"approved"}


def test_non_object_body_is_rejected(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    w = repo.create_webhook(user_id="u1", platform="hotmart", name="x")

    resp = client.post(f"/webhook-receiver?token={w['token']}", json=[1, 2, 3])
    assert resp.status_code == 400
    resp = client.post(
        f"/webhook-receiver?token={w['token']}",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert repo.count_sales() == 0


def test_sales_api_lists_with_metrics_and_deletes(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    w = repo.create_webhook(user_id="u1", platform="hotmart", name="x")
    for status, amount in (("approved", 100), ("pending", 40), ("refunded", 25)):
        client.post(f"/webhook-receiver?token={w['token']}", json={"status": status, "amount": amount})

    resp = client.get("/api/sales", params={"user_id": "u1"})
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["sales"]) == 3
    assert body["metrics"]["total_revenue"] == 100
    assert body["metrics"]["total_pending"] == 40
    assert body["metrics"]["total_refunds"] == 25

    only_pending = client.get("/api/sales", params={"user_id": "u1", "status": "pending"}).json()
    assert [s["status"] for s in only_pending["sales"]] == ["pending"]
    assert only_pending["metrics"]["total_revenue"] == 0
    assert only_pending["metrics"]["total_pending"] == 40
    assert only_pending["period_metrics"]["total_revenue"] == 100
    assert only_pending["period_metrics"]["total_sales"] == 3

    sale_id = body["sales"][0]["id"]
    assert client.delete(f"/api/sales/{sale_id}", params={"user_id": "u2"}).status_code == 404
    assert client.delete(f"/api/sales/{sale_id}", params={"user_id": "u1"}).status_code == 200
    assert repo.count_sales("u1") == 2


def test_health(tmp_path: Path) -> None:
    _, client = _setup(tmp_path)
    assert client.get("/health").json() == {"ok": True}


def test_oversized_amount_is_recorded_as_zero(tmp_path: Path) -> None:
    repo, client = _setup(tmp_path)
    w = repo.create_webhook(user_id="u1", platform="hotmart", name="x")

    resp = client.post(f"/webhook-receiver?token={w['token']}", json={"status": "paid", "amount": 10**400})
    assert resp.status_code == 200
    assert repo.get_sale(resp.json()["sale_id"])["amount"] == 0.0
    assert repo.count_sales("u1") == 1


def test_database_failure_returns_persistence_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    repo, client = _setup(tmp_path)
    w = repo.create_webhook(user_id="u1", platform="hotmart", name="x")

    def locked(self, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(Repo, "insert_sale", locked)
    resp = client.post(f"/webhook-receiver?token={w['token']}", json={"status": "paid", "amount": 10})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Failed to save sale data"}
    assert repo.count_sales() == 0
