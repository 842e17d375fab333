from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from gerencia.errors import GerenciaError


class MetaApiError(GerenciaError):
    """Graph API answered with an `error` object (or something that is not JSON)."""

    status_code = 400

    def __init__(self, message: str, *, code: Any = None, status_code: int | None = None):
        super().__init__(message, status_code=status_code)
        self.code = code


@dataclass(frozen=True)
class GraphContext:
    access_token: str
    base_url: str = "https://graph.facebook.com"
    version: str = "v18.0"
    timeout_sec: float = 30.0

    @property
    def root(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.version}"


class AdsDataSource(Protocol):
    async def invoke(
        self,
        action: str,
        *,
        ad_account_id: str | None = None,
        campaign_id: str | None = None,
        adset_id: str | None = None,
        ad_id: str | None = None,
        date_range: str | None = None,
        updates: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run one named action. Raise ValueError on bad input, MetaApiError on Graph errors."""
