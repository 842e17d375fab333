from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from gerencia.repo import SalesFilters
from gerencia.util import to_float


REVENUE_STATUSES = frozenset({"approved", "paid"})
PENDING_STATUSES = frozenset({"pending"})
REFUND_STATUSES = frozenset({"refunded", "chargedback"})
DECLINED_STATUSES = frozenset({"cancelled", "declined"})


@dataclass(frozen=True)
class SalesMetrics:
    total_revenue: float = 0.0
    total_pending: float = 0.0
    total_refunds: float = 0.0
    approved_sales: int = 0
    total_sales: int = 0
    approval_rate: float = 0.0
    arpu: float = 0.0
    avg_ticket: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def aggregate_sales(sales: Iterable[dict[str, Any]]) -> SalesMetrics:
    """
    Revenue summary over already-filtered sale rows.

    ARPU divides by distinct customer emails; rows without any email fall
    back to the approved-sale count.
    """
    total_revenue = 0.0
    total_pending = 0.0
    total_refunds = 0.0
    approved = 0
    total = 0
    customers: set[str] = set()

    for s in sales:
        total += 1
        status = str(s.get("status") or "")
        amount = to_float(s.get("amount"))
        if status in REVENUE_STATUSES:
            total_revenue += amount
            approved += 1
        elif status in PENDING_STATUSES:
            total_pending += amount
        elif status in REFUND_STATUSES:
            total_refunds += amount

        email = s.get("customer_email")
        if isinstance(email, str) and email.strip():
            customers.add(email.strip())

    buyers = len(customers) or approved
    return SalesMetrics(
        total_revenue=total_revenue,
        total_pending=total_pending,
        total_refunds=total_refunds,
        approved_sales=approved,
        total_sales=total,
        approval_rate=(approved / total * 100.0) if total else 0.0,
        arpu=(total_revenue / buyers) if buyers else 0.0,
        avg_ticket=(total_revenue / approved) if approved else 0.0,
    )


def _parse_created_at(v: Any) -> datetime | None:
    if isinstance(v, datetime):
        dt = v
    elif isinstance(v, str) and v:
        try:
            dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def filter_sales(sales: Iterable[dict[str, Any]], filters: SalesFilters) -> list[dict[str, Any]]:
    """In-memory twin of `Repo.list_sales` filtering (order is preserved)."""
    status = filters.effective_status()
    platform = filters.effective_platform()
    start = _aware(filters.start) if filters.start is not None else None
    end = _aware(filters.end) if filters.end is not None else None

    out = []
    for s in sales:
        if status and str(s.get("status") or "").lower() != status:
            continue
        if platform and str(s.get("platform") or "").lower() != platform:
            continue
        if start is not None or end is not None:
            created = _parse_created_at(s.get("created_at"))
            if created is None:
                continue
            if start is not None and created < start:
                continue
            if end is not None and created > end:
                continue
        out.append(s)
    return out


# ---------------------------------------------------------------------- #
# UTM attribution                                                          #
# ---------------------------------------------------------------------- #


@dataclass
class AttributionMetrics:
    sales: int = 0
    revenue: float = 0.0
    refunded_sales: int = 0
    declined_sales: int = 0


@dataclass
class SalesAttribution:
    by_campaign_id: dict[str, AttributionMetrics] = field(default_factory=dict)
    by_adset_id: dict[str, AttributionMetrics] = field(default_factory=dict)
    by_ad_id: dict[str, AttributionMetrics] = field(default_factory=dict)

    def for_level(self, level: str) -> dict[str, AttributionMetrics]:
        if level == "campaign":
            return self.by_campaign_id
        if level == "adset":
            return self.by_adset_id
        if level == "ad":
            return self.by_ad_id
        raise ValueError(f"Unknown level: {level}")


def id_from_utm(value: Any) -> str | None:
    """`"Black Friday|1203"` -> `"1203"`. Values without a pipe carry no id."""
    if not value or not isinstance(value, str):
        return None
    parts = value.split("|")
    if len(parts) < 2:
        return None
    return parts[-1].strip() or None


def _tracking(raw: dict[str, Any]) -> dict[str, Any]:
    tracking = raw.get("tracking")
    return tracking if isinstance(tracking, dict) else raw


def attribute_sales(sales: Iterable[dict[str, Any]]) -> SalesAttribution:
    """
    Group sales by the Meta ids that the UTM tracking script embeds:
    utm_campaign -> campaign, utm_medium -> ad set, utm_content -> ad.
    """
    out = SalesAttribution()
    for s in sales:
        raw = s.get("raw_data")
        if not isinstance(raw, dict):
            continue
        tracking = _tracking(raw)
        status = str(s.get("status") or "")
        amount = to_float(s.get("amount"))

        for bucket, key in (
            (out.by_campaign_id, "utm_campaign"),
            (out.by_adset_id, "utm_medium"),
            (out.by_ad_id, "utm_content"),
        ):
            entity_id = id_from_utm(tracking.get(key))
            if not entity_id:
                continue
            m = bucket.setdefault(entity_id, AttributionMetrics())
            if status in REVENUE_STATUSES:
                m.sales += 1
                m.revenue += amount
            elif status in REFUND_STATUSES:
                m.refunded_sales += 1
            elif status in DECLINED_STATUSES:
                m.declined_sales += 1
    return out
