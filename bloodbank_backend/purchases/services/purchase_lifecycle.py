"""
PURCHASE LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for BloodPurchase entities.

    pending -> verified -> confirmed -> ready -> completed
    any non-terminal state -> cancelled

Skipping ahead (e.g. pending -> confirmed), moving backwards and
self-transitions are all illegal.

DESIGN PRINCIPLES:
- No database writes
- No side effects
- Single source of truth
"""

from purchases.models import BloodPurchase
from purchases.services.exceptions import InvalidTransition

# ============================================================
# STATE DEFINITIONS
# ============================================================

STATUSES = (
    BloodPurchase.STATUS_PENDING,
    BloodPurchase.STATUS_VERIFIED,
    BloodPurchase.STATUS_CONFIRMED,
    BloodPurchase.STATUS_READY,
    BloodPurchase.STATUS_COMPLETED,
    BloodPurchase.STATUS_CANCELLED,
)

TERMINAL_STATES = {
    BloodPurchase.STATUS_COMPLETED,
    BloodPurchase.STATUS_CANCELLED,
}

IN_PROGRESS_STATES = {
    BloodPurchase.STATUS_VERIFIED,
    BloodPurchase.STATUS_CONFIRMED,
    BloodPurchase.STATUS_READY,
}

ALLOWED_TRANSITIONS = {
    BloodPurchase.STATUS_PENDING: {
        BloodPurchase.STATUS_VERIFIED,
        BloodPurchase.STATUS_CANCELLED,
    },
    BloodPurchase.STATUS_VERIFIED: {
        BloodPurchase.STATUS_CONFIRMED,
        BloodPurchase.STATUS_CANCELLED,
    },
    BloodPurchase.STATUS_CONFIRMED: {
        BloodPurchase.STATUS_READY,
        BloodPurchase.STATUS_CANCELLED,
    },
    BloodPurchase.STATUS_READY: {
        BloodPurchase.STATUS_COMPLETED,
        BloodPurchase.STATUS_CANCELLED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def is_known_status(status) -> bool:
    return status in STATUSES


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, purchase: BloodPurchase, target_status: str):
    if not is_known_status(target_status):
        raise InvalidTransition(
            f"Unknown status '{target_status}'. "
            f"Expected one of: {', '.join(STATUSES)}"
        )

    if purchase.status in TERMINAL_STATES:
        raise InvalidTransition(
            f"Purchase {purchase.tracking_number} is {purchase.status} "
            f"and can no longer change status"
        )

    if not can_transition(
        from_status=purchase.status,
        to_status=target_status,
    ):
        raise InvalidTransition(
            f"Purchase {purchase.tracking_number} cannot transition from "
            f"'{purchase.status}' to '{target_status}'"
        )
