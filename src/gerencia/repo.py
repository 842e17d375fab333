from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from gerencia.errors import DuplicateTokenError, PersistenceError
from gerencia.util import generate_token, mask_token, new_id, now_utc_iso, to_iso_utc


ACTIVE = "active"
INACTIVE = "inactive"
_STATUSES = {ACTIVE, INACTIVE}


@dataclass(frozen=True)
class SalesFilters:
    status: str | None = None
    platform: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    def effective_status(self) -> str | None:
        s = (self.status or "").strip().lower()
        return None if s in {"", "all"} else s

    def effective_platform(self) -> str | None:
        p = (self.platform or "").strip().lower()
        return None if p in {"", "all"} else p


def _check_status(status: str) -> str:
    s = (status or "").strip().lower()
    if s not in _STATUSES:
        raise ValueError(f"status must be one of: {', '.join(sorted(_STATUSES))}")
    return s


def _sale_row(row: sqlite3.Row) -> dict[str, Any]:
    out = dict(row)
    raw = out.get("raw_data")
    try:
        out["raw_data"] = json.loads(raw) if raw else {}
    except ValueError:
        out["raw_data"] = {}
    return out


class Repo:
    """
    Data access for webhook configs, API credentials, sales and profiles.
    Every call opens its own short-lived connection (sqlite3 only).
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute("PRAGMA journal_mode = WAL;")
        return conn

    # ------------------------------------------------------------------ #
    # Webhooks                                                             #
    # ------------------------------------------------------------------ #

    def create_webhook(
        self,
        *,
        user_id: str,
        platform: str,
        name: str,
        token: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        pixel_id: str | None = None,
        webhook_url: str | None = None,
    ) -> dict[str, Any]:
        now = now_utc_iso()
        wid = new_id("whk")
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO webhooks(
                      id, user_id, platform, name, token, client_id, client_secret,
                      pixel_id, webhook_url, status, created_at, updated_at
                    ) VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        wid,
                        user_id,
                        platform.strip().lower(),
                        name,
                        token or generate_token(),
                        client_id or None,
                        client_secret or None,
                        pixel_id or None,
                        webhook_url or None,
                        ACTIVE,
                        now,
                        now,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateTokenError("webhook token already in use") from e
        row = self.get_webhook(wid)
        if row is None:
            raise PersistenceError("webhook row missing after insert")
        return row

    def get_webhook(self, webhook_id: str) -> dict[str, Any] | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM webhooks WHERE id=?", (webhook_id,)).fetchone()
            return dict(row) if row else None

    def list_webhooks(self, user_id: str) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM webhooks WHERE user_id=? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
            return [dict(r) for r in rows]

    def find_active_webhook_by_token(self, token: str) -> dict[str, Any] | None:
        if not token:
            return None
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM webhooks WHERE token=? AND status=?",
                (token, ACTIVE),
            ).fetchone()
            return dict(row) if row else None

    def set_webhook_status(self, webhook_id: str, status: str) -> bool:
        now = now_utc_iso()
        with self.connect() as conn:
            cur = conn.execute(
                "UPDATE webhooks SET status=?, updated_at=? WHERE id=?",
                (_check_status(status), now, webhook_id),
            )
            return cur.rowcount > 0

    def delete_webhook(self, webhook_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM webhooks WHERE id=?", (webhook_id,))
            return cur.rowcount > 0

    # ------------------------------------------------------------------ #
    # API credentials                                                      #
    # ------------------------------------------------------------------ #

    def create_api_credential(self, *, user_id: str, name: str) -> dict[str, Any]:
        """Create a credential. The returned row is the only place the clear token is exposed."""
        now = now_utc_iso()
        cid = new_id("crd")
        token = generate_token()
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO api_credentials(id, user_id, name, token, status, created_at, updated_at)
                    VALUES(?, ?, ?, ?, ?, ?, ?)
                    """,
                    (cid, user_id, name, token, ACTIVE, now, now),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateTokenError("credential token collision") from e
        return {
            "id": cid,
            "user_id": user_id,
            "name": name,
            "token": token,
            "status": ACTIVE,
            "created_at": now,
            "updated_at": now,
        }

    def list_api_credentials(self, user_id: str) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM api_credentials WHERE user_id=? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        out = []
        for r in rows:
            d = dict(r)
            d["token"] = mask_token(d.get("token"))
            out.append(d)
        return out

    def find_active_api_credential_by_token(self, token: str) -> dict[str, Any] | None:
        if not token:
            return None
        with self.connect() as conn:
            row = conn.execute(
                "SELECT id, user_id, name, status FROM api_credentials WHERE token=? AND status=?",
                (token, ACTIVE),
            ).fetchone()
            return dict(row) if row else None

    def set_api_credential_status(self, credential_id: str, status: str) -> bool:
        now = now_utc_iso()
        with self.connect() as conn:
            cur = conn.execute(
                "UPDATE api_credentials SET status=?, updated_at=? WHERE id=?",
                (_check_status(status), now, credential_id),
            )
            return cur.rowcount > 0

    def delete_api_credential(self, credential_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM api_credentials WHERE id=?", (credential_id,))
            return cur.rowcount > 0

    # ------------------------------------------------------------------ #
    # Sales                                                                #
    # ------------------------------------------------------------------ #

    def insert_sale(
        self,
        *,
        user_id: str,
        webhook_id: str | None,
        platform: str,
        transaction_id: str | None,
        status: str,
        customer_name: str | None,
        customer_email: str | None,
        customer_phone: str | None,
        product_id: str | None,
        product_name: str | None,
        amount: float,
        currency: str,
        payment_method: str | None,
        commission: float,
        raw_data: Any,
    ) -> str:
        now = now_utc_iso()
        sid = new_id("sal")
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO sales(
                  id, user_id, webhook_id, platform, transaction_id, status,
                  customer_name, customer_email, customer_phone, product_id, product_name,
                  amount, currency, payment_method, commission, raw_data, created_at, updated_at
                ) VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sid,
                    user_id,
                    webhook_id,
                    platform,
                    transaction_id,
                    status,
                    customer_name,
                    customer_email,
                    customer_phone,
                    product_id,
                    product_name,
                    amount,
                    currency,
                    payment_method,
                    commission,
                    json.dumps(raw_data, ensure_ascii=False),
                    now,
                    now,
                ),
            )
        return sid

    def get_sale(self, sale_id: str) -> dict[str, Any] | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM sales WHERE id=?", (sale_id,)).fetchone()
            return _sale_row(row) if row else None

    def list_sales(self, user_id: str, filters: SalesFilters | None = None) -> list[dict[str, Any]]:
        filters = filters or SalesFilters()
        where = ["user_id=?"]
        params: list[Any] = [user_id]
        status = filters.effective_status()
        if status:
            where.append("status=?")
            params.append(status)
        platform = filters.effective_platform()
        if platform:
            where.append("platform=?")
            params.append(platform)
        if filters.start is not None:
            where.append("created_at >= ?")
            params.append(to_iso_utc(filters.start))
        if filters.end is not None:
            where.append("created_at <= ?")
            params.append(to_iso_utc(filters.end))
        sql = "SELECT * FROM sales WHERE " + " AND ".join(where) + " ORDER BY created_at DESC, rowid DESC"
        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [_sale_row(r) for r in rows]

    def count_sales(self, user_id: str | None = None) -> int:
        sql = "SELECT COUNT(*) AS n FROM sales"
        params: list[Any] = []
        if user_id is not None:
            sql += " WHERE user_id=?"
            params.append(user_id)
        with self.connect() as conn:
            row = conn.execute(sql, params).fetchone()
            return int(row["n"] or 0)

    def count_sales_for_transaction(self, webhook_id: str, transaction_id: str) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM sales WHERE webhook_id=? AND transaction_id=?",
                (webhook_id, transaction_id),
            ).fetchone()
            return int(row["n"] or 0)

    def delete_sale(self, sale_id: str, *, user_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM sales WHERE id=? AND user_id=?", (sale_id, user_id))
            return cur.rowcount > 0

    # ------------------------------------------------------------------ #
    # Profiles                                                             #
    # ------------------------------------------------------------------ #

    def upsert_profile(
        self,
        *,
        user_id: str,
        email: str | None,
        plan: str = "free",
        plan_status: str = "active",
    ) -> None:
        now = now_utc_iso()
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO profiles(user_id, email, plan, plan_status, created_at, updated_at)
                VALUES(?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                  email=excluded.email,
                  plan=excluded.plan,
                  plan_status=excluded.plan_status,
                  updated_at=excluded.updated_at
                """,
                (user_id, email, plan, plan_status, now, now),
            )

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM profiles WHERE user_id=?", (user_id,)).fetchone()
            return dict(row) if row else None

    def find_profile_by_email(self, email: str) -> dict[str, Any] | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM profiles WHERE email=? ORDER BY created_at LIMIT 1",
                (email,),
            ).fetchone()
            return dict(row) if row else None

    def update_profile_plan(self, user_id: str, *, plan: str, plan_status: str) -> bool:
        now = now_utc_iso()
        with self.connect() as conn:
            cur = conn.execute(
                "UPDATE profiles SET plan=?, plan_status=?, updated_at=? WHERE user_id=?",
                (plan, plan_status, now, user_id),
            )
            return cur.rowcount > 0
