from __future__ import annotations

import math
import secrets
from datetime import datetime, timezone
from typing import Any


def now_utc_iso() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


def new_id(prefix: str) -> str:
    # e.g. sal_3kq9Xw-T0aBv2g
    return f"{prefix}_{secrets.token_urlsafe(10)}"


def generate_token() -> str:
    # 32 random bytes, hex encoded (64 chars)
    return secrets.token_hex(32)


def mask_token(token: str | None) -> str | None:
    if not token:
        return token
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}{'*' * 8}{token[-4:]}"


def to_iso_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def dig(obj: Any, *path: str) -> Any:
    """Walk nested dicts; any missing or non-dict hop yields None."""
    cur = obj
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def first_truthy(*values: Any) -> Any:
    for v in values:
        if v:
            return v
    return None


def to_float(v: Any, default: float = 0.0) -> float:
    if v is None or isinstance(v, bool):
        return default
    try:
        n = float(v.strip()) if isinstance(v, str) else float(v)
    except (TypeError, ValueError, OverflowError):
        return default
    return n if math.isfinite(n) else default
