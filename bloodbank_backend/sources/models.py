# sources/models.py

from django.db import models
from django.db.models import Q


class BloodSource(models.Model):
    """
    Shared master-data fields for anything that supplies blood.

    Orders copy `name` at creation time (denormalized) and are NOT re-synced
    when a source is renamed.
    """

    name = models.CharField(max_length=255)
    registration_number = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Official registration/licence number (optional). If set, must be unique.",
    )

    address = models.TextField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(blank=True, default="")

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["name"]

    def __str__(self):
        return self.name


class Organization(BloodSource):
    class Meta(BloodSource.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["registration_number"],
                condition=Q(registration_number__isnull=False),
                name="uniq_organization_registration_number",
            ),
        ]
        indexes = [
            models.Index(fields=["is_active"], name="sources_org_active_idx"),
        ]


class Hospital(BloodSource):
    class Meta(BloodSource.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["registration_number"],
                condition=Q(registration_number__isnull=False),
                name="uniq_hospital_registration_number",
            ),
        ]
        indexes = [
            models.Index(fields=["is_active"], name="sources_hosp_active_idx"),
        ]
