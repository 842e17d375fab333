from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from gerencia.connectors.base import GraphContext, MetaApiError


logger = logging.getLogger(__name__)

PAGE_LIMIT = 500
DEFAULT_DATE_PRESET = "today"

CAMPAIGN_FIELDS = (
    "id",
    "name",
    "status",
    "effective_status",
    "objective",
    "daily_budget",
    "lifetime_budget",
    "created_time",
    "updated_time",
)
ADSET_FIELDS = (
    "id",
    "name",
    "status",
    "effective_status",
    "daily_budget",
    "lifetime_budget",
    "targeting",
    "optimization_goal",
    "campaign_id",
)
AD_FIELDS = ("id", "name", "status", "effective_status", "creative", "adset_id", "campaign_id")

INSIGHT_FIELDS = (
    "spend",
    "impressions",
    "clicks",
    "cpc",
    "cpm",
    "ctr",
    "reach",
    "frequency",
    "actions",
    "action_values",
    "cost_per_action_type",
    "video_play_actions",
    "video_p25_watched_actions",
    "video_p50_watched_actions",
    "video_p75_watched_actions",
    "video_p100_watched_actions",
)

_LIST_ACTIONS = {
    "get-campaigns": ("campaigns", CAMPAIGN_FIELDS),
    "get-adsets": ("adsets", ADSET_FIELDS),
    "get-ads": ("ads", AD_FIELDS),
}
_INSIGHT_ACTIONS = {
    "get-campaign-insights": "campaign",
    "get-adset-insights": "adset",
    "get-ad-insights": "ad",
}
_STATUS_ACTIONS = {"pause": "PAUSED", "activate": "ACTIVE"}
_LEVEL_LABEL = {"campaign": "Campaign", "adset": "Adset", "ad": "Ad"}

ACTIONS = tuple(
    list(_LIST_ACTIONS)
    + list(_INSIGHT_ACTIONS)
    + [f"{verb}-{lv}" for verb in ("update", "pause", "activate") for lv in ("campaign", "adset", "ad")]
)


def normalize_account_id(raw: str | None) -> str:
    """`act_123`, `123` and `1-2-3` all become `act_123`."""
    digits = re.sub(r"\D+", "", str(raw or "").strip().removeprefix("act_"))
    return f"act_{digits}" if digits else ""


class MetaAdsClient:
    """
    Thin async proxy over the Meta Marketing (Graph) API.

    Reads follow cursor pagination to the end. Writes are single POSTs to
    the entity node. `transport` exists so tests can plug in an
    `httpx.MockTransport`.
    """

    def __init__(self, ctx: GraphContext, *, transport: httpx.AsyncBaseTransport | None = None):
        self.ctx = ctx
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.ctx.timeout_sec, transport=self.transport)

    def _check(self, r: httpx.Response) -> dict[str, Any]:
        try:
            obj = r.json()
        except ValueError as e:
            raise MetaApiError(f"Meta Graph API non-JSON response: {r.status_code}") from e
        if isinstance(obj, dict) and obj.get("error"):
            err = obj.get("error") or {}
            msg = str(err.get("message") or "unknown error") if isinstance(err, dict) else str(err)
            code = err.get("code") if isinstance(err, dict) else None
            logger.warning("Meta Graph API error: %s (code=%s)", msg, code)
            raise MetaApiError(msg, code=code)
        return obj if isinstance(obj, dict) else {}

    async def _iter_graph_data(self, *, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Return the full `data` list of a collection endpoint, following `paging.next`."""
        p = dict(params)
        p["access_token"] = self.ctx.access_token

        url: str | None = f"{self.ctx.root}/{path.lstrip('/')}"
        out: list[dict[str, Any]] = []
        async with self._client() as client:
            next_params: dict[str, Any] | None = p
            while url:
                obj = self._check(await client.get(url, params=next_params))
                data = obj.get("data")
                if isinstance(data, list):
                    out.extend(it for it in data if isinstance(it, dict))
                paging = obj.get("paging")
                next_url = paging.get("next") if isinstance(paging, dict) else None
                url = str(next_url) if next_url else None
                next_params = None  # next URL already carries the query string
        return out

    async def _post_node(self, node_id: str, body: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            r = await client.post(
                f"{self.ctx.root}/{node_id}",
                params={"access_token": self.ctx.access_token},
                json=body,
            )
        return self._check(r)

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
        if not self.ctx.access_token:
            raise ValueError("Access token is required")
        if action not in ACTIONS:
            raise ValueError("Invalid action")

        if action in _LIST_ACTIONS:
            key, fields = _LIST_ACTIONS[action]
            account = _require_account(ad_account_id)
            rows = await self._iter_graph_data(
                path=f"{account}/{key}",
                params={"fields": ",".join(fields), "limit": PAGE_LIMIT},
            )
            return {key: rows}

        if action in _INSIGHT_ACTIONS:
            level = _INSIGHT_ACTIONS[action]
            account = _require_account(ad_account_id)
            fields = (f"{level}_id", f"{level}_name") + INSIGHT_FIELDS
            rows = await self._iter_graph_data(
                path=f"{account}/insights",
                params={
                    "fields": ",".join(fields),
                    "level": level,
                    "date_preset": date_range or DEFAULT_DATE_PRESET,
                    "limit": PAGE_LIMIT,
                },
            )
            return {"insights": rows}

        verb, _, level = action.partition("-")
        node_id = {"campaign": campaign_id, "adset": adset_id, "ad": ad_id}[level]
        if verb == "update":
            if not node_id or not updates:
                raise ValueError(f"{_LEVEL_LABEL[level]} ID and updates are required")
            data = await self._post_node(node_id, dict(updates))
            logger.info("updated %s %s fields=%s", level, node_id, sorted(updates))
            return {"success": True, "data": data}
        if not node_id:
            raise ValueError(f"{_LEVEL_LABEL[level]} ID is required")
        await self._post_node(node_id, {"status": _STATUS_ACTIONS[verb]})
        logger.info("%s %s -> %s", level, node_id, _STATUS_ACTIONS[verb])
        return {"success": True}


def _require_account(ad_account_id: str | None) -> str:
    account = normalize_account_id(ad_account_id)
    if not account:
        raise ValueError("Ad account ID is required")
    return account
