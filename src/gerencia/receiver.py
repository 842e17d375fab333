from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Mapping

from gerencia.classifier import StatusClassifier
from gerencia.errors import AuthenticationError, PersistenceError, ValidationError
from gerencia.normalizer import NewSale, normalize
from gerencia.registry import ExtractorFactory
from gerencia.repo import Repo


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceivedSale:
    sale_id: str
    sale: NewSale


def receive_sale(
    repo: Repo,
    *,
    token: str | None,
    platform: str | None,
    payload: Any,
    classifier: StatusClassifier,
    extractors: Mapping[str, ExtractorFactory] | None = None,
) -> ReceivedSale:
    """
    Authenticate an inbound sale webhook, normalize it and store one sale row.

    Rules:
    - Only an active webhook whose token matches exactly authenticates.
      There is no fallback to matching by platform name.
    - An explicit `platform` wins over the platform stored on the webhook.
    - Every authenticated call inserts a new row (resends are logged, not merged).
    """
    webhook = repo.find_active_webhook_by_token(token or "")
    if not webhook:
        logger.warning("sale webhook rejected: %s", "missing token" if not token else "unknown or inactive token")
        raise AuthenticationError("Webhook configuration not found")

    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object")

    effective_platform = (platform or "").strip() or str(webhook["platform"])
    sale = normalize(
        effective_platform,
        payload,
        user_id=str(webhook["user_id"]),
        webhook_id=str(webhook["id"]),
        classifier=classifier,
        extractors=extractors,
    )

    try:
        if sale.transaction_id and repo.count_sales_for_transaction(str(webhook["id"]), sale.transaction_id):
            logger.warning(
                "possible resend: transaction %s already recorded for webhook %s",
                sale.transaction_id,
                webhook["id"],
            )
        sale_id = repo.insert_sale(**sale.as_row())
    except sqlite3.Error as e:
        logger.error("failed to save sale for webhook %s: %s: %s", webhook["id"], type(e).__name__, e)
        raise PersistenceError("Failed to save sale data") from e

    logger.info(
        "sale recorded id=%s user=%s platform=%s status=%s",
        sale_id,
        sale.user_id,
        sale.platform,
        sale.status,
    )
    return ReceivedSale(sale_id=sale_id, sale=sale)
