from __future__ import annotations

from typing import Any

from gerencia.extractors.base import DEFAULT_CURRENCY, PartialSale, money, text
from gerencia.util import dig


class GenericExtractor:
    """
    Fallback for every platform without a dedicated extractor.

    Unknown shapes degrade to partial data instead of being rejected: a sale
    with an amount but no customer is still worth recording.
    """

    name = "generic"

    def extract(self, payload: dict[str, Any]) -> PartialSale:
        return PartialSale(
            transaction_id=text(payload.get("transaction_id"), payload.get("id")),
            customer_name=text(dig(payload, "customer", "name")),
            customer_email=text(dig(payload, "customer", "email")),
            customer_phone=text(dig(payload, "customer", "phone")),
            product_name=text(dig(payload, "product", "name")),
            product_id=text(dig(payload, "product", "id")),
            amount=money(
                dig(payload, "payment", "amount"),
                payload.get("amount"),
                payload.get("value"),
            ),
            currency=text(dig(payload, "payment", "currency")) or DEFAULT_CURRENCY,
            payment_method=text(dig(payload, "payment", "method")),
            commission=money(payload.get("commission")),
        )
