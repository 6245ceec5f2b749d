# purchases/services/purchase_service.py

"""
CORE PURCHASE DOMAIN SERVICE

SINGLE SOURCE OF TRUTH for:
- purchase creation (tracking number, expiry, pricing snapshot, first history entry)
- status transitions (lifecycle rules + audit trail)
- cancellation

GUARANTEES:
- Every lookup goes through scoping: an order outside the caller's scope
  is reported as NOT FOUND, never as forbidden.
- Transitions and cancellations lock the row (select_for_update inside
  transaction.atomic) and write status + history + notes in ONE save.
- History is appended in lock order and never rewritten.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from permissions.principal import Principal
from permissions.roles import CAP_PURCHASES_TRANSITION
from purchases.models import BloodPurchase
from purchases.services.exceptions import (
    PurchaseConflict,
    PurchaseForbidden,
    PurchaseNotFound,
    PurchaseUnavailable,
    PurchaseValidationError,
)
from purchases.services.pricing import total_cost_of, validate_pricing
from purchases.services.purchase_lifecycle import TERMINAL_STATES, validate_transition
from purchases.services.scoping import scoped_queryset
from purchases.services.tracking import generate_tracking_number

logger = logging.getLogger(__name__)

NOTE_SUBMITTED = "Purchase request submitted"
NOTE_CANCELLED_BY_USER = "Cancelled by user"
NOTE_CANCELLED_BY_ADMIN = "Cancelled by administrator"

PICKUP_FIELDS = ("address", "date", "time", "instructions")


# ============================================================
# HELPERS
# ============================================================


def _history_entry(*, status: str, actor, note: str) -> dict:
    return {
        "status": status,
        "timestamp": timezone.now().isoformat(),
        "actor": str(actor) if actor is not None else None,
        "note": note,
    }


def _purchase_fields(draft) -> dict:
    """
    Model field values for a draft already cleaned by PurchaseCreateSerializer.

    Only the domain rules live here: the pricing snapshot (zero counts as
    missing, optional total check) is validated and normalized to JSON.
    """
    if not isinstance(draft, Mapping):
        raise PurchaseValidationError(
            errors=[{"field": None, "message": "Purchase data must be an object."}]
        )

    pricing = validate_pricing(draft.get("pricing"))

    return {
        "source_type": draft["source_type"],
        "source_id": draft["source_id"],
        "source_name": draft["source_name"],
        "blood_type": draft["blood_type"],
        "units": draft["units"],
        "urgency": draft["urgency"],
        "required_date": draft["required_date"],
        "pricing": pricing,
        "total_cost": total_cost_of(pricing),
        "patient_name": draft["patient_name"],
        "patient_age": draft.get("patient_age"),
        "patient_condition": draft.get("patient_condition") or "",
        "contact_name": draft["contact_name"],
        "contact_phone": draft["contact_phone"],
        "contact_email": draft.get("contact_email") or "",
        "payment_method": draft.get("payment_method") or "",
        "user_notes": draft.get("user_notes") or "",
    }


def _clean_pickup_details(pickup_details) -> dict:
    if not isinstance(pickup_details, dict):
        raise PurchaseValidationError(
            errors=[{"field": "pickup_details", "message": "Must be an object."}]
        )

    unknown = sorted(set(pickup_details) - set(PICKUP_FIELDS))
    if unknown:
        raise PurchaseValidationError(
            errors=[
                {"field": f"pickup_details.{key}", "message": "Unknown pickup field."}
                for key in unknown
            ]
        )

    return {key: str(value) for key, value in pickup_details.items() if value is not None}


def _locked_scoped_purchase(*, principal: Principal, purchase_id) -> BloodPurchase:
    """Must be called inside transaction.atomic()."""
    try:
        purchase = (
            scoped_queryset(principal)
            .select_for_update()
            .filter(pk=purchase_id)
            .first()
        )
    except (ValueError, DjangoValidationError):
        purchase = None

    if purchase is None:
        raise PurchaseNotFound()
    return purchase


# ============================================================
# READS
# ============================================================


def get_purchase(*, purchase_id, principal: Principal) -> BloodPurchase:
    try:
        purchase = scoped_queryset(principal).filter(pk=purchase_id).first()
    except (ValueError, DjangoValidationError):
        purchase = None
    except DatabaseError as exc:
        logger.error(
            "Datastore failure reading purchase",
            extra={"purchase_id": str(purchase_id), "error": str(exc)},
        )
        raise PurchaseUnavailable() from exc

    if purchase is None:
        raise PurchaseNotFound()
    return purchase


def list_purchases(*, principal: Principal, requested: Optional[dict] = None):
    """Scoped, newest first. Lazy: DB errors surface when the page is evaluated."""
    return scoped_queryset(principal, requested).select_related("purchased_by").order_by("-created_at")


def list_my_purchases(*, principal: Principal):
    """Orders the caller placed themselves, whatever their role."""
    return (
        scoped_queryset(principal, mine=True)
        .select_related("purchased_by")
        .order_by("-created_at")
    )


# ============================================================
# WRITES
# ============================================================


def create_purchase(*, draft: dict, principal: Principal) -> BloodPurchase:
    """
    Persist a new `pending` order from a validated draft.

    - pricing domain errors are reported as PurchaseValidationError
    - tracking number collisions are retried inside a savepoint, up to
      PURCHASE_TRACKING_MAX_ATTEMPTS, then PurchaseUnavailable
    """
    cleaned = _purchase_fields(draft)

    now = timezone.now()
    purchase = BloodPurchase(
        purchased_by_id=principal.user_id,
        expiry_date=now + timedelta(days=settings.PURCHASE_SHELF_LIFE_DAYS),
        status=BloodPurchase.STATUS_PENDING,
        status_history=[
            _history_entry(
                status=BloodPurchase.STATUS_PENDING,
                actor=principal.user_id,
                note=NOTE_SUBMITTED,
            )
        ],
        **cleaned,
    )

    max_attempts = max(1, int(settings.PURCHASE_TRACKING_MAX_ATTEMPTS))

    for attempt in range(1, max_attempts + 1):
        purchase.tracking_number = generate_tracking_number()
        try:
            with transaction.atomic():
                purchase.save(force_insert=True)
        except IntegrityError as exc:
            if not BloodPurchase.objects.filter(tracking_number=purchase.tracking_number).exists():
                raise PurchaseUnavailable("Could not store the purchase") from exc
            logger.warning(
                "Tracking number collision",
                extra={"tracking_number": purchase.tracking_number, "attempt": attempt},
            )
            continue
        except DatabaseError as exc:
            logger.error("Datastore failure creating purchase", extra={"error": str(exc)})
            raise PurchaseUnavailable() from exc

        logger.info(
            "Blood purchase created",
            extra={
                "purchase_id": str(purchase.id),
                "tracking_number": purchase.tracking_number,
                "actor": str(principal.user_id),
                "source_type": purchase.source_type,
                "source_id": purchase.source_id,
            },
        )
        return purchase

    logger.error(
        "Tracking number allocation exhausted",
        extra={"attempts": max_attempts},
    )
    raise PurchaseUnavailable("Could not allocate a unique tracking number")


def transition_purchase(
    *,
    purchase_id,
    new_status: str,
    principal: Principal,
    note: Optional[str] = None,
    admin_notes: Optional[str] = None,
    pickup_details: Optional[dict] = None,
) -> BloodPurchase:
    """
    Move an order along one legal edge of the lifecycle (administrators only).

    Order of checks:
    1) not visible to the caller      -> PurchaseNotFound
    2) caller is not an administrator -> PurchaseForbidden
    3) unknown status / terminal / illegal edge -> InvalidTransition
    """
    with transaction.atomic():
        purchase = _locked_scoped_purchase(principal=principal, purchase_id=purchase_id)

        if not principal.can(CAP_PURCHASES_TRANSITION):
            raise PurchaseForbidden("Only administrators can change a purchase status")

        validate_transition(purchase=purchase, target_status=new_status)

        cleaned_pickup = _clean_pickup_details(pickup_details) if pickup_details else None

        previous_status = purchase.status
        purchase.status = new_status

        if admin_notes:
            purchase.admin_notes = admin_notes.strip()
        if cleaned_pickup:
            purchase.pickup_details = {**(purchase.pickup_details or {}), **cleaned_pickup}

        purchase.status_history = [
            *purchase.status_history,
            _history_entry(
                status=new_status,
                actor=principal.user_id,
                note=note or admin_notes or f"Status updated to {new_status}",
            ),
        ]

        purchase.save(
            update_fields=[
                "status",
                "status_history",
                "admin_notes",
                "pickup_details",
                "updated_at",
            ]
        )

    logger.info(
        "Blood purchase status changed",
        extra={
            "purchase_id": str(purchase.id),
            "tracking_number": purchase.tracking_number,
            "from_status": previous_status,
            "to_status": new_status,
            "actor": str(principal.user_id),
        },
    )
    return purchase


def cancel_purchase(
    *,
    purchase_id,
    principal: Principal,
    reason: Optional[str] = None,
) -> BloodPurchase:
    """
    Cancel an order that has not finished yet.

    The purchaser and any administrator whose scope covers the order may
    cancel; scoping already hides everything else (PurchaseNotFound).
    A completed or cancelled order raises PurchaseConflict.
    """
    with transaction.atomic():
        purchase = _locked_scoped_purchase(principal=principal, purchase_id=purchase_id)

        if purchase.status in TERMINAL_STATES:
            raise PurchaseConflict(f"Cannot cancel a purchase that is {purchase.status}")

        previous_status = purchase.status
        note = NOTE_CANCELLED_BY_ADMIN if principal.is_admin else NOTE_CANCELLED_BY_USER
        if reason and reason.strip():
            note = f"{note}: {reason.strip()}"

        purchase.status = BloodPurchase.STATUS_CANCELLED
        purchase.status_history = [
            *purchase.status_history,
            _history_entry(
                status=BloodPurchase.STATUS_CANCELLED,
                actor=principal.user_id,
                note=note,
            ),
        ]
        purchase.save(update_fields=["status", "status_history", "updated_at"])

    logger.info(
        "Blood purchase cancelled",
        extra={
            "purchase_id": str(purchase.id),
            "tracking_number": purchase.tracking_number,
            "from_status": previous_status,
            "actor": str(principal.user_id),
        },
    )
    return purchase
