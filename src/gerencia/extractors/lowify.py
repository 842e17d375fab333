from __future__ import annotations

from typing import Any

from gerencia.extractors.base import DEFAULT_CURRENCY, PartialSale, money, text
from gerencia.util import dig


class LowifyExtractor:
    """
    Lowify checkout payloads.

    Lowify sends the buyer either under `customer` or `buyer`, the product
    either as `product` or `offer`, and the charged value in one of several
    places (`sale_amount` first).
    """

    name = "lowify"

    def extract(self, payload: dict[str, Any]) -> PartialSale:
        def person(field: str) -> str | None:
            return text(dig(payload, "customer", field), dig(payload, "buyer", field))

        return PartialSale(
            transaction_id=text(payload.get("transaction_id"), payload.get("order_id"), payload.get("id")),
            customer_name=person("name"),
            customer_email=person("email"),
            customer_phone=person("phone"),
            product_name=text(dig(payload, "product", "name"), dig(payload, "offer", "name")),
            product_id=text(dig(payload, "product", "id"), dig(payload, "offer", "id")),
            amount=money(
                payload.get("sale_amount"),
                dig(payload, "product", "price"),
                dig(payload, "payment", "amount"),
                payload.get("value"),
                payload.get("price"),
            ),
            currency=text(dig(payload, "payment", "currency")) or DEFAULT_CURRENCY,
            payment_method=text(dig(payload, "payment", "method"), payload.get("payment_type")),
            commission=money(payload.get("commission")),
        )
