from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from gerencia.sales_metrics import AttributionMetrics
from gerencia.util import to_float


LEVELS = ("campaign", "adset", "ad")

PURCHASE_ACTION_TYPES = ("purchase", "omni_purchase")
LANDING_PAGE_VIEW_TYPES = ("landing_page_view", "omni_landing_page_view")
INITIATE_CHECKOUT_TYPES = (
    "initiate_checkout",
    "omni_initiated_checkout",
    "offsite_conversion.fb_pixel_initiate_checkout",
)
LEAD_ACTION_TYPES = ("lead", "offsite_conversion.fb_pixel_lead")
THREE_SECOND_VIEW_TYPES = ("video_view",)


def _ratio(num: float, den: float, scale: float = 1.0) -> float | None:
    # Zero denominator means "not measurable", never 0 or NaN.
    if not den:
        return None
    return num / den * scale


def _first_action(items: Any, types: Iterable[str]) -> float:
    """Value of the first list entry whose action_type is one of `types`."""
    if not isinstance(items, list):
        return 0.0
    wanted = set(types)
    for it in items:
        if isinstance(it, dict) and it.get("action_type") in wanted:
            return to_float(it.get("value"))
    return 0.0


def _sum_actions(items: Any) -> float:
    if not isinstance(items, list):
        return 0.0
    return sum(to_float(it.get("value")) for it in items if isinstance(it, dict))


@dataclass(frozen=True)
class DerivedCampaignMetrics:
    spent: float = 0.0
    impressions: int = 0
    clicks: int = 0
    reach: int = 0
    frequency: float = 0.0
    ctr: float | None = None
    cpc: float | None = None
    cpm: float | None = None

    sales: int = 0
    revenue: float = 0.0
    profit: float = 0.0
    cpa: float | None = None
    roi: float | None = None
    margin: float | None = None

    landing_page_views: int = 0
    cpv: float | None = None
    initiated_checkouts: int = 0
    cpi: float | None = None
    checkout_conversion: float | None = None
    connect_rate: float | None = None
    ic_rate: float | None = None
    page_conversion: float | None = None
    leads: int = 0
    cpl: float | None = None

    video_plays: int = 0
    video_3s_views: int = 0
    video_p25: int = 0
    video_p50: int = 0
    video_p75: int = 0
    video_p100: int = 0
    hook_play_rate: float | None = None
    hook_rate: float | None = None
    hold_rate: float | None = None
    video_retention: float | None = None
    body_retention: float | None = None
    body_conversion: float | None = None
    cta_rate: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def derive_metrics(
    insight: Mapping[str, Any] | None,
    attribution: AttributionMetrics | None = None,
) -> DerivedCampaignMetrics:
    """
    Flatten one Graph API insights row into derived metrics.

    Percent-style fields (ctr, margin, *_rate, *_conversion, *_retention)
    are 0..100. Money-per-unit fields (cpa, cpc, cpv, cpi, cpl) are in the
    account currency. When tracked checkout data is available for the
    entity it replaces the pixel-reported purchases and purchase value.
    """
    row = insight or {}
    actions = row.get("actions")
    action_values = row.get("action_values")

    spent = to_float(row.get("spend"))
    impressions = int(to_float(row.get("impressions")))
    clicks = int(to_float(row.get("clicks")))
    reach = int(to_float(row.get("reach")))
    frequency = to_float(row.get("frequency"))

    if attribution is not None:
        sales = attribution.sales
        revenue = attribution.revenue
    else:
        sales = int(_first_action(actions, PURCHASE_ACTION_TYPES))
        revenue = _first_action(action_values, PURCHASE_ACTION_TYPES)

    lpv = int(_first_action(actions, LANDING_PAGE_VIEW_TYPES))
    ic = int(_first_action(actions, INITIATE_CHECKOUT_TYPES))
    leads = int(_first_action(actions, LEAD_ACTION_TYPES))

    plays = int(_sum_actions(row.get("video_play_actions")))
    views_3s = int(_first_action(actions, THREE_SECOND_VIEW_TYPES))
    p25 = int(_sum_actions(row.get("video_p25_watched_actions")))
    p50 = int(_sum_actions(row.get("video_p50_watched_actions")))
    p75 = int(_sum_actions(row.get("video_p75_watched_actions")))
    p100 = int(_sum_actions(row.get("video_p100_watched_actions")))

    return DerivedCampaignMetrics(
        spent=spent,
        impressions=impressions,
        clicks=clicks,
        reach=reach,
        frequency=frequency,
        ctr=_ratio(clicks, impressions, 100),
        cpc=_ratio(spent, clicks),
        cpm=_ratio(spent, impressions, 1000),
        sales=sales,
        revenue=revenue,
        profit=revenue - spent,
        cpa=_ratio(spent, sales),
        roi=_ratio(revenue, spent),
        margin=_ratio(revenue - spent, revenue, 100),
        landing_page_views=lpv,
        cpv=_ratio(spent, lpv),
        initiated_checkouts=ic,
        cpi=_ratio(spent, ic),
        checkout_conversion=_ratio(sales, ic, 100),
        connect_rate=_ratio(lpv, clicks, 100),
        ic_rate=_ratio(ic, lpv, 100),
        page_conversion=_ratio(sales, lpv, 100),
        leads=leads,
        cpl=_ratio(spent, leads),
        video_plays=plays,
        video_3s_views=views_3s,
        video_p25=p25,
        video_p50=p50,
        video_p75=p75,
        video_p100=p100,
        hook_play_rate=_ratio(plays, impressions, 100),
        hook_rate=_ratio(views_3s, impressions, 100),
        hold_rate=_ratio(p75, impressions, 100),
        video_retention=_ratio(views_3s, plays, 100),
        body_retention=_ratio(p75, plays, 100),
        body_conversion=_ratio(sales, p75, 100),
        cta_rate=_ratio(clicks, p75, 100),
    )


def format_metric(value: float | None, *, decimals: int = 2, prefix: str = "", suffix: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{prefix}{value:,.{decimals}f}{suffix}"


@dataclass(frozen=True)
class EntityMetrics:
    id: str
    name: str
    level: str
    active: bool
    raw_status: str
    budget: float | None
    budget_type: str | None
    campaign_id: str | None
    adset_id: str | None
    metrics: DerivedCampaignMetrics

    def to_dict(self) -> dict[str, Any]:
        out = {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "active": self.active,
            "raw_status": self.raw_status,
            "budget": self.budget,
            "budget_type": self.budget_type,
            "campaign_id": self.campaign_id,
            "adset_id": self.adset_id,
        }
        out.update(self.metrics.to_dict())
        return out


def parse_budget(entity: Mapping[str, Any]) -> tuple[float | None, str | None]:
    """Graph budgets are minor units (cents). Daily wins over lifetime."""
    daily = to_float(entity.get("daily_budget")) / 100
    if daily:
        return daily, "daily"
    lifetime = to_float(entity.get("lifetime_budget")) / 100
    if lifetime:
        return lifetime, "total"
    return None, None


def merge_entities(
    entities: Iterable[Mapping[str, Any]],
    insights: Iterable[Mapping[str, Any]],
    level: str,
    *,
    attribution: Mapping[str, AttributionMetrics] | None = None,
    only_with_data: bool | None = None,
) -> list[EntityMetrics]:
    """
    Join Meta entities with their insights rows and derive metrics per entity.

    Ordering: active first, then by spend descending. `only_with_data`
    defaults to on for campaigns and off for ad sets and ads, where empty
    (often freshly duplicated) sets are still worth listing.
    """
    if level not in LEVELS:
        raise ValueError(f"Unknown level: {level}")
    if only_with_data is None:
        only_with_data = level == "campaign"

    key = f"{level}_id"
    by_id: dict[str, Mapping[str, Any]] = {}
    for row in insights:
        rid = str(row.get(key) or "")
        if rid:
            by_id[rid] = row

    out: list[EntityMetrics] = []
    for e in entities:
        eid = str(e.get("id") or "")
        if not eid:
            continue
        raw_status = str(e.get("effective_status") or e.get("status") or "")
        budget, budget_type = parse_budget(e)
        metrics = derive_metrics(by_id.get(eid), (attribution or {}).get(eid))
        if only_with_data and not (metrics.impressions > 0 or metrics.spent > 0):
            continue
        out.append(
            EntityMetrics(
                id=eid,
                name=str(e.get("name") or ""),
                level=level,
                active=raw_status.upper() == "ACTIVE",
                raw_status=raw_status,
                budget=budget,
                budget_type=budget_type,
                campaign_id=str(e.get("campaign_id")) if e.get("campaign_id") else None,
                adset_id=str(e.get("adset_id")) if e.get("adset_id") else None,
                metrics=metrics,
            )
        )

    out.sort(key=lambda m: (not m.active, -m.metrics.spent))
    return out
