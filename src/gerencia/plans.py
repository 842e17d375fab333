from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Mapping

from gerencia.errors import AuthenticationError, NotFoundError, PersistenceError, ValidationError
from gerencia.repo import Repo
from gerencia.util import dig, first_truthy


logger = logging.getLogger(__name__)

FREE = "free"

PLAN_ACTIVE = "active"
PLAN_OVERDUE = "overdue"
PLAN_CANCELLED = "cancelled"

CANCEL_KEYWORDS = ("refunded", "chargeback", "cancelled", "canceled", "expired")
OVERDUE_KEYWORDS = ("overdue", "past_due", "unpaid")


@dataclass(frozen=True)
class OfferPlanTable:
    """
    Checkout offer id -> internal plan name -> plan tier stored on profiles.

    Internal names (premium/advanced/monster) are what the checkout sells;
    profiles keep the older tier names.
    """

    offer_to_plan: Mapping[str, str]
    plan_to_db_plan: Mapping[str, str]

    @staticmethod
    def default() -> "OfferPlanTable":
        return OfferPlanTable(
            offer_to_plan={
                "offer-1771698608846": "premium",  # R$ 27
                "offer-1771698186014": "advanced",  # R$ 67
                "offer-1771698238795": "monster",  # R$ 147
            },
            plan_to_db_plan={
                "premium": "starter",
                "advanced": "profissional",
                "monster": "enterprise",
            },
        )

    def resolve(self, offer_id: str | None) -> str:
        if not offer_id:
            return FREE
        internal = self.offer_to_plan.get(offer_id)
        if not internal:
            return FREE
        return self.plan_to_db_plan.get(internal, internal)


def classify_plan_event(event: str, plan: str) -> tuple[str, str]:
    """Return (plan, plan_status). Cancellation-like events downgrade to free."""
    lowered = (event or "").lower()
    if any(k in lowered for k in CANCEL_KEYWORDS):
        return FREE, PLAN_CANCELLED
    if any(k in lowered for k in OVERDUE_KEYWORDS):
        return plan, PLAN_OVERDUE
    return plan, PLAN_ACTIVE


@dataclass(frozen=True)
class PlanSyncResult:
    email: str
    plan: str
    status: str
    user_id: str


def sync_plan(
    repo: Repo,
    *,
    token: str | None,
    payload: Any,
    offers: OfferPlanTable,
) -> PlanSyncResult:
    """
    Apply a payment-platform subscription event to the buyer's profile.

    The update is last-event-wins: there is no sequence check, so a stale
    retry can overwrite a newer state.
    """
    if not token:
        raise AuthenticationError("Token is required", status_code=401)
    credential = repo.find_active_api_credential_by_token(token)
    if not credential:
        logger.warning("plan sync rejected: unknown or inactive credential")
        raise AuthenticationError("Invalid or inactive token", status_code=401)

    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object")

    email = first_truthy(dig(payload, "buyer", "email"), dig(payload, "customer", "email"), payload.get("email"))
    if not email or not isinstance(email, str):
        raise ValidationError("Buyer email is required")

    event = str(first_truthy(payload.get("event"), payload.get("status")) or "unknown")
    offer_id = first_truthy(dig(payload, "offer", "id"), payload.get("offer_id"))
    plan, plan_status = classify_plan_event(event, offers.resolve(str(offer_id) if offer_id else None))

    profile = repo.find_profile_by_email(email)
    if not profile:
        logger.warning("plan sync: no profile for email %s", email)
        raise NotFoundError("User not found for this email")

    try:
        repo.update_profile_plan(str(profile["user_id"]), plan=plan, plan_status=plan_status)
    except sqlite3.Error as e:
        logger.error("failed to update plan for %s: %s: %s", email, type(e).__name__, e)
        raise PersistenceError("Failed to update plan") from e

    logger.info("plan updated: %s -> %s (%s) via credential %s", email, plan, plan_status, credential["id"])
    return PlanSyncResult(email=email, plan=plan, status=plan_status, user_id=str(profile["user_id"]))
