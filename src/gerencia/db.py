from __future__ import annotations

import sqlite3
from pathlib import Path


SCHEMA_VERSION = 2


class GerenciaDB:
    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute("PRAGMA journal_mode = WAL;")
        return conn

    def init(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )
            current_version = self._get_schema_version(conn)

            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS webhooks (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  platform TEXT NOT NULL,
                  name TEXT NOT NULL,
                  token TEXT UNIQUE,
                  client_id TEXT,
                  client_secret TEXT,
                  pixel_id TEXT,
                  webhook_url TEXT,
                  status TEXT NOT NULL DEFAULT 'active',
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_webhooks_user
                ON webhooks(user_id, created_at);

                CREATE TABLE IF NOT EXISTS api_credentials (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  name TEXT NOT NULL,
                  token TEXT NOT NULL UNIQUE,
                  status TEXT NOT NULL DEFAULT 'active',
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS sales (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  webhook_id TEXT,
                  platform TEXT NOT NULL,
                  transaction_id TEXT,
                  status TEXT NOT NULL,
                  customer_name TEXT,
                  customer_email TEXT,
                  customer_phone TEXT,
                  product_id TEXT,
                  product_name TEXT,
                  amount REAL NOT NULL DEFAULT 0,
                  currency TEXT NOT NULL DEFAULT 'BRL',
                  payment_method TEXT,
                  commission REAL NOT NULL DEFAULT 0,
                  raw_data TEXT NOT NULL DEFAULT '{}',
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_sales_user_created
                ON sales(user_id, created_at);

                CREATE TABLE IF NOT EXISTS profiles (
                  user_id TEXT PRIMARY KEY,
                  email TEXT,
                  plan TEXT NOT NULL DEFAULT 'free',
                  plan_status TEXT NOT NULL DEFAULT 'active',
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_profiles_email
                ON profiles(email);
                """
            )
            if current_version < 2:
                self._migrate_to_v2(conn)
            conn.execute(
                "INSERT OR REPLACE INTO meta(key, value) VALUES(?, ?)",
                ("schema_version", str(SCHEMA_VERSION)),
            )

    def _get_schema_version(self, conn: sqlite3.Connection) -> int:
        row = conn.execute(
            "SELECT value FROM meta WHERE key='schema_version'"
        ).fetchone()
        if not row:
            return 0
        try:
            return int(row["value"])
        except ValueError:
            return 0

    def _column_exists(self, conn: sqlite3.Connection, table: str, column: str) -> bool:
        rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
        return any(str(r["name"]) == column for r in rows)

    def _migrate_to_v2(self, conn: sqlite3.Connection) -> None:
        # v1 databases predate pixel ids on webhooks.
        if not self._column_exists(conn, "webhooks", "pixel_id"):
            conn.execute("ALTER TABLE webhooks ADD COLUMN pixel_id TEXT")
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_sales_webhook_transaction
            ON sales(webhook_id, transaction_id)
            """
        )
