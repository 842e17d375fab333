from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from gerencia.classifier import StatusClassifier, raw_status_of
from gerencia.registry import ExtractorFactory, build_extractor


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewSale:
    """A sale ready to insert. `raw_data` is the vendor payload, untouched."""

    user_id: str
    webhook_id: str | None
    platform: str
    transaction_id: str | None
    status: str
    customer_name: str | None
    customer_email: str | None
    customer_phone: str | None
    product_id: str | None
    product_name: str | None
    amount: float
    currency: str
    payment_method: str | None
    commission: float
    raw_data: Any

    def as_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "webhook_id": self.webhook_id,
            "platform": self.platform,
            "transaction_id": self.transaction_id,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "amount": self.amount,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "commission": self.commission,
            "raw_data": self.raw_data,
        }


def normalize(
    platform: str,
    payload: dict[str, Any],
    *,
    user_id: str,
    webhook_id: str | None,
    classifier: StatusClassifier,
    extractors: Mapping[str, ExtractorFactory] | None = None,
) -> NewSale:
    platform = (platform or "unknown").strip().lower()
    extractor = build_extractor(platform, extractors=extractors)
    partial = extractor.extract(payload)

    if partial.amount == 0:
        # Recorded anyway; a zero-value sale is easier to spot than a dropped one.
        logger.warning(
            "no usable amount in %s payload (extractor=%s, webhook=%s); recording amount=0",
            platform,
            extractor.name,
            webhook_id,
        )

    return NewSale(
        user_id=user_id,
        webhook_id=webhook_id,
        platform=platform,
        status=classifier.classify(raw_status_of(payload)),
        raw_data=payload,
        **partial.to_dict(),
    )
