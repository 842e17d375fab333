from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from gerencia.util import first_truthy, to_float


DEFAULT_CURRENCY = "BRL"


@dataclass(frozen=True)
class PartialSale:
    """Fields an extractor could recover from a vendor payload. Missing values stay None."""

    transaction_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    amount: float = 0.0
    currency: str = DEFAULT_CURRENCY
    payment_method: str | None = None
    commission: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "amount": self.amount,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "commission": self.commission,
        }


class SaleExtractor(Protocol):
    name: str

    def extract(self, payload: dict[str, Any]) -> PartialSale:
        """Best-effort field extraction. Must never raise on unexpected shapes."""


def text(*candidates: Any) -> str | None:
    """First truthy candidate as a string (ids may arrive as numbers)."""
    v = first_truthy(*candidates)
    if v is None or isinstance(v, (dict, list)):
        return None
    s = str(v).strip()
    return s or None


def money(*candidates: Any) -> float:
    """First truthy candidate coerced to float; 0 when nothing usable is present."""
    return to_float(first_truthy(*candidates), 0.0)
