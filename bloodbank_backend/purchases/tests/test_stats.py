from datetime import datetime, timedelta
from unittest import mock

from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone

from permissions.roles import ROLE_ORG_ADMIN, ROLE_SUPER_ADMIN
from purchases.models import BloodPurchase
from purchases.services.exceptions import PurchaseUnavailable
from purchases.services.purchase_service import (
    cancel_purchase,
    create_purchase,
    transition_purchase,
)
from purchases.services.stats_service import get_stats
from purchases.tests.helpers import (
    make_draft,
    make_hospital,
    make_organization,
    make_user,
    principal_for,
)

FORWARD = ["verified", "confirmed", "ready", "completed"]


def _draft_with_total(total, **overrides):
    draft = make_draft(**overrides)
    draft["pricing"]["totalCost"] = total
    return draft


class PurchaseStatsTests(TestCase):
    """
    GUARANTEES:
    - Every status key is present, zero or not
    - Revenue only counts completed orders
    - Stats are computed over the caller's scope
    - Rolling windows use local midnight / Monday / first of month
    - A failing datastore is reported as unavailable
    """

    def setUp(self):
        self.org = make_organization()
        self.hospital = make_hospital()
        self.buyer = make_user("buyer@example.com")
        self.org_admin = make_user("org@example.com", role=ROLE_ORG_ADMIN, organization=self.org)
        self.super_admin = make_user("root@example.com", role=ROLE_SUPER_ADMIN)

        buyer = principal_for(self.buyer)
        admin = principal_for(self.super_admin)

        self.completed_org = create_purchase(
            draft=_draft_with_total(1000, source_id=self.org.id, blood_type="A+", units=2),
            principal=buyer,
        )
        self.completed_hospital = create_purchase(
            draft=_draft_with_total(
                2500.5, source_type="hospital", source_id=self.hospital.id, blood_type="A+", units=1
            ),
            principal=buyer,
        )
        self.in_progress = create_purchase(
            draft=_draft_with_total(700, source_id=self.org.id, blood_type="O-", urgency="emergency"),
            principal=buyer,
        )
        self.cancelled = create_purchase(
            draft=_draft_with_total(9000, source_id=self.org.id, blood_type="B+"),
            principal=buyer,
        )
        self.pending = create_purchase(
            draft=_draft_with_total(400, source_id=self.org.id, blood_type="AB+"),
            principal=buyer,
        )

        for purchase in (self.completed_org, self.completed_hospital):
            for status in FORWARD:
                transition_purchase(purchase_id=purchase.id, new_status=status, principal=admin)

        transition_purchase(purchase_id=self.in_progress.id, new_status="verified", principal=admin)
        cancel_purchase(purchase_id=self.cancelled.id, principal=buyer)

    def test_super_admin_totals(self):
        stats = get_stats(principal=principal_for(self.super_admin))

        self.assertEqual(stats["total_purchases"], 5)
        self.assertEqual(stats["pending_approvals"], 1)
        self.assertEqual(stats["completed_purchases"], 2)
        self.assertEqual(stats["in_progress_purchases"], 1)
        self.assertEqual(stats["total_revenue"], "3500.50")

    def test_every_status_key_is_present(self):
        stats = get_stats(principal=principal_for(self.super_admin))

        self.assertEqual(
            stats["by_status"],
            {
                "pending": 1,
                "verified": 1,
                "confirmed": 0,
                "ready": 0,
                "completed": 2,
                "cancelled": 1,
            },
        )

    def test_distributions(self):
        stats = get_stats(principal=principal_for(self.super_admin))

        self.assertEqual(stats["by_blood_type"]["A+"], 2)
        self.assertEqual(stats["by_blood_type"]["A-"], 0)
        self.assertEqual(stats["by_urgency"], {"emergency": 1, "urgent": 4, "normal": 0})
        self.assertEqual(stats["by_source_type"], {"organization": 4, "hospital": 1})

    def test_blood_type_stats_cover_completed_orders_only(self):
        stats = get_stats(principal=principal_for(self.super_admin))

        self.assertEqual(
            stats["blood_type_stats"],
            [{"blood_type": "A+", "count": 2, "total_units": 3, "total_revenue": "3500.50"}],
        )
        self.assertEqual(
            stats["source_type_stats"],
            [
                {"source_type": "hospital", "count": 1, "revenue": "2500.50"},
                {"source_type": "organization", "count": 1, "revenue": "1000.00"},
            ],
        )

    def test_org_admin_stats_are_scoped(self):
        stats = get_stats(principal=principal_for(self.org_admin))

        self.assertEqual(stats["total_purchases"], 4)
        self.assertEqual(stats["total_revenue"], "1000.00")
        self.assertEqual(stats["by_source_type"]["hospital"], 0)

    def test_filters_narrow_stats(self):
        stats = get_stats(
            principal=principal_for(self.super_admin),
            requested={"source_type": "hospital"},
        )
        self.assertEqual(stats["total_purchases"], 1)

    def test_monthly_revenue_has_twelve_months_ending_now(self):
        stats = get_stats(principal=principal_for(self.super_admin))
        months = stats["monthly_revenue"]

        self.assertEqual(len(months), 12)
        self.assertEqual(months[-1]["month"], timezone.localdate().strftime("%Y-%m"))
        self.assertEqual(months[-1]["revenue"], "3500.50")
        self.assertEqual(months[-1]["count"], 2)
        self.assertTrue(all(m["revenue"] == "0.00" for m in months[:-1]))

    def test_rolling_windows(self):
        tz = timezone.get_current_timezone()
        # Wednesday 2030-01-16 12:00 local
        now = timezone.make_aware(datetime(2030, 1, 16, 12, 0), tz)

        placements = {
            self.completed_org.id: now - timedelta(hours=1),  # today
            self.completed_hospital.id: now - timedelta(days=2),  # Monday: this week
            self.in_progress.id: now - timedelta(days=10),  # this month
            self.cancelled.id: now - timedelta(days=20),  # previous month, recent
            self.pending.id: now - timedelta(days=60),  # old
        }
        for purchase_id, created_at in placements.items():
            BloodPurchase.objects.filter(id=purchase_id).update(created_at=created_at)

        stats = get_stats(principal=principal_for(self.super_admin), now=now)

        self.assertEqual(stats["windows"], {"today": 1, "this_week": 2, "this_month": 3})
        self.assertEqual(stats["recent_purchases"], 4)

    def test_empty_scope_yields_zeros(self):
        nobody = principal_for(make_user("nobody@example.com"))
        stats = get_stats(principal=nobody)

        self.assertEqual(stats["total_purchases"], 0)
        self.assertEqual(stats["total_revenue"], "0.00")
        self.assertEqual(set(stats["by_status"].values()), {0})
        self.assertEqual(stats["blood_type_stats"], [])

    def test_datastore_failure_is_unavailable(self):
        principal = principal_for(self.super_admin)

        with mock.patch(
            "django.db.models.sql.compiler.SQLCompiler.execute_sql",
            side_effect=OperationalError("db down"),
        ):
            with self.assertRaises(PurchaseUnavailable):
                get_stats(principal=principal)
