from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import logging
import os

from dotenv import load_dotenv


def _csv(v: str | None) -> tuple[str, ...]:
    if not v:
        return ()
    return tuple(s.strip() for s in v.split(",") if s.strip())


@dataclass(frozen=True)
class Settings:
    db_path: Path
    web_host: str
    web_port: int
    public_base_url: str = ""
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)
    meta_graph_base_url: str = "https://graph.facebook.com"
    meta_graph_api_version: str = "v18.0"
    meta_http_timeout_sec: float = 30.0
    telegram_bot_token: str | None = None
    telegram_chat_id: int | None = None

    @staticmethod
    def load() -> "Settings":
        load_dotenv()

        db_path = Path(os.getenv("GERENCIA_DB_PATH", "./data/gerencia.sqlite3"))
        web_host = os.getenv("GERENCIA_WEB_HOST", "127.0.0.1")
        web_port = int(os.getenv("GERENCIA_WEB_PORT", "8020"))
        public_base_url = (os.getenv("GERENCIA_PUBLIC_URL") or f"http://{web_host}:{web_port}").strip().rstrip("/")
        log_level = os.getenv("GERENCIA_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        cors_origins = _csv(os.getenv("GERENCIA_CORS_ORIGINS")) or ("*",)

        graph_base = (os.getenv("META_GRAPH_BASE_URL") or "https://graph.facebook.com").strip().rstrip("/")
        graph_version = (os.getenv("META_GRAPH_API_VERSION") or "").strip() or "v18.0"
        graph_timeout = float(os.getenv("META_HTTP_TIMEOUT_SEC", "30"))

        token = os.getenv("TELEGRAM_BOT_TOKEN") or None
        chat_id_raw = os.getenv("TELEGRAM_CHAT_ID") or None
        chat_id = int(chat_id_raw) if chat_id_raw else None

        return Settings(
            db_path=db_path,
            web_host=web_host,
            web_port=web_port,
            public_base_url=public_base_url,
            log_level=log_level,
            cors_origins=cors_origins,
            meta_graph_base_url=graph_base,
            meta_graph_api_version=graph_version,
            meta_http_timeout_sec=graph_timeout,
            telegram_bot_token=token,
            telegram_chat_id=chat_id,
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level, logging.INFO),
    )
