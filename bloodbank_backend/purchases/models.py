# purchases/models.py

"""
BLOOD PURCHASE ORDER

One row per purchase request. Lifecycle:

    pending -> verified -> confirmed -> ready -> completed

    pending | verified | confirmed | ready -> cancelled

Write rules are enforced here as a last line of defence
(services are the normal write path):
- tracking_number, purchaser, source and pricing never change after insert
- completed / cancelled orders never change status again
- status_history is append-only and its last entry mirrors `status`
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models

from sources.refs import SOURCE_TYPE_CHOICES, make_source

User = settings.AUTH_USER_MODEL


class BloodPurchase(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # ---------------- STATUS ----------------
    STATUS_PENDING = "pending"
    STATUS_VERIFIED = "verified"
    STATUS_CONFIRMED = "confirmed"
    STATUS_READY = "ready"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUSES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_VERIFIED, "Verified"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_READY, "Ready for pickup"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # ---------------- BLOOD ----------------
    BLOOD_TYPES = [
        ("A+", "A+"),
        ("A-", "A-"),
        ("B+", "B+"),
        ("B-", "B-"),
        ("AB+", "AB+"),
        ("AB-", "AB-"),
        ("O+", "O+"),
        ("O-", "O-"),
    ]

    URGENCY_EMERGENCY = "emergency"
    URGENCY_URGENT = "urgent"
    URGENCY_NORMAL = "normal"

    URGENCIES = [
        (URGENCY_EMERGENCY, "Emergency"),
        (URGENCY_URGENT, "Urgent"),
        (URGENCY_NORMAL, "Normal"),
    ]

    # ---------------- PAYMENT (recorded, never settled here) ----------------
    PAYMENT_PENDING = "pending"
    PAYMENT_PAID = "paid"
    PAYMENT_REFUNDED = "refunded"

    PAYMENT_STATUSES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_REFUNDED, "Refunded"),
    ]

    PAYMENT_METHODS = [
        ("cash", "Cash"),
        ("bKash", "bKash"),
        ("nagad", "Nagad"),
        ("card", "Card"),
        ("online", "Online"),
    ]

    tracking_number = models.CharField(max_length=32, unique=True, editable=False)

    purchased_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="blood_purchases",
    )

    # Supplier (tagged by source_type; see sources.refs)
    source_type = models.CharField(max_length=20, choices=SOURCE_TYPE_CHOICES)
    source_id = models.PositiveIntegerField()
    source_name = models.CharField(max_length=255)

    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPES)
    units = models.PositiveIntegerField()
    expiry_date = models.DateTimeField()

    # Locked-in quote as submitted; total_cost mirrors pricing["totalCost"] for SQL sums
    pricing = models.JSONField()
    total_cost = models.DecimalField(max_digits=14, decimal_places=2)

    # Patient / contact
    patient_name = models.CharField(max_length=255)
    patient_age = models.PositiveIntegerField(null=True, blank=True)
    patient_condition = models.TextField(blank=True, default="")
    contact_name = models.CharField(max_length=255)
    contact_phone = models.CharField(max_length=50)
    contact_email = models.EmailField(blank=True, default="")

    urgency = models.CharField(max_length=20, choices=URGENCIES, default=URGENCY_NORMAL)
    required_date = models.DateTimeField()

    status = models.CharField(max_length=20, choices=STATUSES, default=STATUS_PENDING)
    # [{"status", "timestamp", "actor", "note"}, ...] in insertion order
    status_history = models.JSONField(default=list)

    # {"address", "date", "time", "instructions"}
    pickup_details = models.JSONField(default=dict, blank=True)

    payment_status = models.CharField(
        max_length=20, choices=PAYMENT_STATUSES, default=PAYMENT_PENDING
    )
    payment_method = models.CharField(
        max_length=20, choices=PAYMENT_METHODS, blank=True, default=""
    )

    admin_notes = models.TextField(blank=True, default="")
    user_notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    _IMMUTABLE_FIELDS = (
        "tracking_number",
        "purchased_by_id",
        "source_type",
        "source_id",
        "pricing",
        "total_cost",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(units__gt=0),
                name="blood_purchase_units_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(total_cost__gte=Decimal("0.00")),
                name="blood_purchase_total_nonnegative",
            ),
        ]
        indexes = [
            models.Index(fields=["purchased_by", "status"], name="purch_buyer_status_idx"),
            models.Index(fields=["source_type", "source_id"], name="purch_source_idx"),
            models.Index(fields=["status", "required_date"], name="purch_status_required_idx"),
            models.Index(fields=["created_at"], name="purch_created_idx"),
        ]

    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    @property
    def source(self):
        return make_source(self.source_type, self.source_id)

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def _validate_immutable(self, previous: "BloodPurchase"):
        for field in self._IMMUTABLE_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValueError(f"BloodPurchase field '{field}' cannot be changed.")

        if previous.is_terminal and self.status != previous.status:
            raise ValueError(
                f"BloodPurchase is immutable once {previous.status}. "
                f"Status change {previous.status} -> {self.status} is not allowed."
            )

        old_history = previous.status_history or []
        new_history = self.status_history or []
        if new_history[: len(old_history)] != old_history:
            raise ValueError("BloodPurchase status_history is append-only.")

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = BloodPurchase.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        if self.status_history and self.status_history[-1].get("status") != self.status:
            raise ValueError("Last status_history entry must match the current status.")

        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.tracking_number} ({self.blood_type} x{self.units}, {self.status})"
