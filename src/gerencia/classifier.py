from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any


logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REFUNDED = "refunded"
CANCELLED = "cancelled"

CANONICAL_STATUSES = frozenset({PENDING, APPROVED, REFUNDED, CANCELLED})


@dataclass(frozen=True)
class StatusVocabulary:
    """
    Ordered keyword rules: the first rule whose keyword appears in the
    lowercased vendor status wins.

    Rule order matters. Intermediate and negative states are checked before
    the broad `purchase`/`sale` catch-all so that e.g. "waiting_payment"
    never counts as revenue.
    """

    rules: tuple[tuple[str, tuple[str, ...]], ...]

    def __post_init__(self) -> None:
        unknown = sorted({canonical for canonical, _ in self.rules} - CANONICAL_STATUSES)
        if unknown:
            raise ValueError(f"vocabulary maps to non-canonical statuses: {', '.join(unknown)}")

    @staticmethod
    def default() -> "StatusVocabulary":
        return StatusVocabulary(
            rules=(
                (PENDING, ("pending", "waiting", "awaiting", "waiting_payment", "pix_pending")),
                (REFUNDED, ("refunded", "refund", "chargeback", "chargedback", "dispute")),
                (CANCELLED, ("cancelled", "canceled", "expired", "abandoned")),
                (APPROVED, ("approved", "paid", "confirmed", "completed")),
                (APPROVED, ("purchase", "sale")),
            )
        )


class StatusClassifier:
    def __init__(self, vocabulary: StatusVocabulary | None = None):
        self.vocabulary = vocabulary or StatusVocabulary.default()

    def classify(self, raw_status: str) -> str:
        lowered = (raw_status or "").lower()
        for canonical, keywords in self.vocabulary.rules:
            if any(k in lowered for k in keywords):
                return canonical
        # Unknown vocabularies pass through so they stay visible for triage.
        logger.info("unrecognized sale status passed through: %r", lowered)
        return lowered


def raw_status_of(payload: dict[str, Any]) -> str:
    for key in ("status", "event"):
        v = payload.get(key)
        if v:
            return str(v)
    return "unknown"
