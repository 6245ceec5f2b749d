import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BloodPurchase",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tracking_number", models.CharField(editable=False, max_length=32, unique=True)),
                (
                    "source_type",
                    models.CharField(
                        choices=[("organization", "Organization"), ("hospital", "Hospital")],
                        max_length=20,
                    ),
                ),
                ("source_id", models.PositiveIntegerField()),
                ("source_name", models.CharField(max_length=255)),
                (
                    "blood_type",
                    models.CharField(
                        choices=[
                            ("A+", "A+"),
                            ("A-", "A-"),
                            ("B+", "B+"),
                            ("B-", "B-"),
                            ("AB+", "AB+"),
                            ("AB-", "AB-"),
                            ("O+", "O+"),
                            ("O-", "O-"),
                        ],
                        max_length=3,
                    ),
                ),
                ("units", models.PositiveIntegerField()),
                ("expiry_date", models.DateTimeField()),
                ("pricing", models.JSONField()),
                ("total_cost", models.DecimalField(decimal_places=2, max_digits=14)),
                ("patient_name", models.CharField(max_length=255)),
                ("patient_age", models.PositiveIntegerField(blank=True, null=True)),
                ("patient_condition", models.TextField(blank=True, default="")),
                ("contact_name", models.CharField(max_length=255)),
                ("contact_phone", models.CharField(max_length=50)),
                ("contact_email", models.EmailField(blank=True, default="", max_length=254)),
                (
                    "urgency",
                    models.CharField(
                        choices=[("emergency", "Emergency"), ("urgent", "Urgent"), ("normal", "Normal")],
                        default="normal",
                        max_length=20,
                    ),
                ),
                ("required_date", models.DateTimeField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("confirmed", "Confirmed"),
                            ("ready", "Ready for pickup"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("status_history", models.JSONField(default=list)),
                ("pickup_details", models.JSONField(blank=True, default=dict)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("refunded", "Refunded")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("cash", "Cash"),
                            ("bKash", "bKash"),
                            ("nagad", "Nagad"),
                            ("card", "Card"),
                            ("online", "Online"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                ("admin_notes", models.TextField(blank=True, default="")),
                ("user_notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "purchased_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="blood_purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["purchased_by", "status"], name="purch_buyer_status_idx"),
                    models.Index(fields=["source_type", "source_id"], name="purch_source_idx"),
                    models.Index(fields=["status", "required_date"], name="purch_status_required_idx"),
                    models.Index(fields=["created_at"], name="purch_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("units__gt", 0)),
                        name="blood_purchase_units_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_cost__gte", Decimal("0.00"))),
                        name="blood_purchase_total_nonnegative",
                    ),
                ],
            },
        ),
    ]
