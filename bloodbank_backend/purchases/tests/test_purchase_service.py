from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.db import OperationalError
from django.test import TestCase, override_settings
from django.utils import timezone

from permissions.roles import ROLE_ORG_ADMIN, ROLE_SUPER_ADMIN
from purchases.models import BloodPurchase
from purchases.services.exceptions import (
    InvalidTransition,
    PurchaseConflict,
    PurchaseForbidden,
    PurchaseNotFound,
    PurchaseUnavailable,
    PurchaseValidationError,
)
from purchases.services.purchase_service import (
    NOTE_CANCELLED_BY_ADMIN,
    NOTE_CANCELLED_BY_USER,
    NOTE_SUBMITTED,
    cancel_purchase,
    create_purchase,
    get_purchase,
    transition_purchase,
)
from purchases.tests.helpers import (
    make_draft,
    make_organization,
    make_user,
    principal_for,
)

FORWARD = [
    BloodPurchase.STATUS_VERIFIED,
    BloodPurchase.STATUS_CONFIRMED,
    BloodPurchase.STATUS_READY,
    BloodPurchase.STATUS_COMPLETED,
]


class CreatePurchaseTests(TestCase):
    """
    GUARANTEES:
    - A new order is pending with exactly one history entry
    - Expiry is 35 days after creation
    - The pricing snapshot and its total are stored as quoted
    - Pricing domain errors and datastore failures surface as domain errors
    """

    def setUp(self):
        self.org = make_organization()
        self.buyer = make_user("buyer@example.com")
        self.principal = principal_for(self.buyer)

    def test_creates_pending_order_with_first_history_entry(self):
        purchase = create_purchase(
            draft=make_draft(source_id=self.org.id), principal=self.principal
        )

        self.assertEqual(purchase.status, BloodPurchase.STATUS_PENDING)
        self.assertEqual(len(purchase.status_history), 1)

        entry = purchase.status_history[0]
        self.assertEqual(entry["status"], BloodPurchase.STATUS_PENDING)
        self.assertEqual(entry["note"], NOTE_SUBMITTED)
        self.assertEqual(entry["actor"], str(self.buyer.id))

        self.assertEqual(purchase.purchased_by_id, self.buyer.id)
        self.assertRegex(purchase.tracking_number, r"^BL\d{6}-\d{6}$")

    def test_expiry_is_thirty_five_days_out(self):
        before = timezone.now()
        purchase = create_purchase(
            draft=make_draft(source_id=self.org.id), principal=self.principal
        )
        after = timezone.now()

        self.assertGreaterEqual(purchase.expiry_date, before + timedelta(days=35))
        self.assertLessEqual(purchase.expiry_date, after + timedelta(days=35))

    def test_pricing_snapshot_is_stored_as_quoted(self):
        draft = make_draft(source_id=self.org.id)
        draft["pricing"]["totalCost"] = 5000  # does not match the parts

        purchase = create_purchase(draft=draft, principal=self.principal)
        refreshed = BloodPurchase.objects.get(id=purchase.id)

        self.assertEqual(refreshed.pricing["totalCost"], 5000)
        self.assertEqual(refreshed.total_cost, Decimal("5000.00"))

    def test_zero_price_is_rejected(self):
        draft = make_draft(source_id=self.org.id)
        draft["pricing"]["bloodPrice"] = Decimal("0")

        with self.assertRaises(PurchaseValidationError) as ctx:
            create_purchase(draft=draft, principal=self.principal)

        self.assertEqual(ctx.exception.fields, ["pricing.bloodPrice"])
        self.assertEqual(BloodPurchase.objects.count(), 0)

    def test_oversized_total_is_a_validation_error(self):
        draft = make_draft(source_id=self.org.id)
        draft["pricing"]["totalCost"] = 1e30

        with self.assertRaises(PurchaseValidationError) as ctx:
            create_purchase(draft=draft, principal=self.principal)

        self.assertEqual(ctx.exception.fields, ["pricing.totalCost"])

    def test_non_object_draft_is_a_validation_error(self):
        with self.assertRaises(PurchaseValidationError):
            create_purchase(draft=[1], principal=self.principal)

    def test_decimal_amounts_are_stored_as_json_numbers(self):
        draft = make_draft(source_id=self.org.id)
        draft["pricing"] = {
            "bloodPrice": Decimal("1500.50"),
            "processingFee": Decimal("200"),
            "screeningFee": Decimal("300"),
            "serviceCharge": Decimal("100"),
            "additionalFees": {"cooling": Decimal("25.25")},
            "totalCost": Decimal("2125.75"),
        }

        purchase = create_purchase(draft=draft, principal=self.principal)
        refreshed = BloodPurchase.objects.get(id=purchase.id)

        self.assertEqual(refreshed.pricing["bloodPrice"], 1500.5)
        self.assertEqual(refreshed.pricing["additionalFees"], {"cooling": 25.25})
        self.assertEqual(refreshed.total_cost, Decimal("2125.75"))

    def test_datastore_failure_on_insert_is_unavailable(self):
        with mock.patch.object(BloodPurchase, "save", side_effect=OperationalError("db down")):
            with self.assertRaises(PurchaseUnavailable):
                create_purchase(
                    draft=make_draft(source_id=self.org.id), principal=self.principal
                )

    def test_tracking_collision_is_retried(self):
        existing = create_purchase(
            draft=make_draft(source_id=self.org.id), principal=self.principal
        )

        with mock.patch(
            "purchases.services.purchase_service.generate_tracking_number",
            side_effect=[existing.tracking_number, "BL999999-000001"],
        ) as gen:
            purchase = create_purchase(
                draft=make_draft(source_id=self.org.id), principal=self.principal
            )

        self.assertEqual(gen.call_count, 2)
        self.assertEqual(purchase.tracking_number, "BL999999-000001")

    @override_settings(PURCHASE_TRACKING_MAX_ATTEMPTS=3)
    def test_tracking_collisions_give_up_after_max_attempts(self):
        existing = create_purchase(
            draft=make_draft(source_id=self.org.id), principal=self.principal
        )

        with mock.patch(
            "purchases.services.purchase_service.generate_tracking_number",
            return_value=existing.tracking_number,
        ) as gen:
            with self.assertRaises(PurchaseUnavailable):
                create_purchase(
                    draft=make_draft(source_id=self.org.id), principal=self.principal
                )

        self.assertEqual(gen.call_count, 3)
        self.assertEqual(BloodPurchase.objects.count(), 1)


class TrackingUniquenessTests(TestCase):
    def test_ten_thousand_orders_have_distinct_tracking_numbers(self):
        org = make_organization()
        principal = principal_for(make_user("bulk@example.com"))
        draft = make_draft(source_id=org.id)

        for _ in range(10_000):
            create_purchase(draft=draft, principal=principal)

        numbers = list(BloodPurchase.objects.values_list("tracking_number", flat=True))
        self.assertEqual(len(numbers), 10_000)
        self.assertEqual(len(set(numbers)), 10_000)


class TransitionPurchaseTests(TestCase):
    """
    GUARANTEES:
    - Happy path produces five history entries in order
    - Skipping ahead is rejected and leaves the order untouched
    - Plain users cannot transition (even their own order)
    - Orders outside the caller's scope are NOT FOUND
    - Terminal orders never change again
    """

    def setUp(self):
        self.org = make_organization()
        self.other_org = make_organization("Other Blood Bank")

        self.buyer = make_user("buyer@example.com")
        self.other_buyer = make_user("other@example.com")
        self.org_admin = make_user(
            "orgadmin@example.com", role=ROLE_ORG_ADMIN, organization=self.org
        )
        self.other_org_admin = make_user(
            "otheradmin@example.com", role=ROLE_ORG_ADMIN, organization=self.other_org
        )
        self.super_admin = make_user("root@example.com", role=ROLE_SUPER_ADMIN)

        self.purchase = create_purchase(
            draft=make_draft(source_id=self.org.id),
            principal=principal_for(self.buyer),
        )

    def _advance(self, principal, statuses):
        for status in statuses:
            transition_purchase(
                purchase_id=self.purchase.id, new_status=status, principal=principal
            )

    def test_happy_path_records_five_history_entries(self):
        self._advance(principal_for(self.org_admin), FORWARD)

        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        self.assertEqual(purchase.status, BloodPurchase.STATUS_COMPLETED)
        self.assertEqual(
            [e["status"] for e in purchase.status_history],
            [BloodPurchase.STATUS_PENDING, *FORWARD],
        )
        self.assertEqual(purchase.status_history[1]["note"], "Status updated to verified")
        self.assertEqual(purchase.status_history[1]["actor"], str(self.org_admin.id))

    def test_history_is_append_only(self):
        admin = principal_for(self.super_admin)
        seen = list(self.purchase.status_history)

        for status in FORWARD:
            purchase = transition_purchase(
                purchase_id=self.purchase.id, new_status=status, principal=admin
            )
            self.assertEqual(purchase.status_history[: len(seen)], seen)
            self.assertEqual(len(purchase.status_history), len(seen) + 1)
            self.assertEqual(purchase.status_history[-1]["status"], purchase.status)
            seen = list(purchase.status_history)

    def test_successive_writers_both_keep_their_entries(self):
        org_admin = principal_for(self.org_admin)
        super_admin = principal_for(self.super_admin)
        stale = BloodPurchase.objects.get(id=self.purchase.id)

        transition_purchase(
            purchase_id=self.purchase.id, new_status=FORWARD[0], principal=org_admin
        )
        transition_purchase(
            purchase_id=self.purchase.id, new_status=FORWARD[1], principal=super_admin
        )

        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        self.assertEqual(len(stale.status_history), 1)
        self.assertEqual(
            [(e["status"], e["actor"]) for e in purchase.status_history],
            [
                (BloodPurchase.STATUS_PENDING, str(self.buyer.id)),
                (FORWARD[0], str(self.org_admin.id)),
                (FORWARD[1], str(self.super_admin.id)),
            ],
        )
        self.assertEqual(purchase.status, FORWARD[1])

    def test_skip_ahead_is_rejected(self):
        with self.assertRaises(InvalidTransition):
            transition_purchase(
                purchase_id=self.purchase.id,
                new_status=BloodPurchase.STATUS_CONFIRMED,
                principal=principal_for(self.org_admin),
            )

        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        self.assertEqual(purchase.status, BloodPurchase.STATUS_PENDING)
        self.assertEqual(len(purchase.status_history), 1)

    def test_unknown_status_is_invalid_transition(self):
        with self.assertRaises(InvalidTransition):
            transition_purchase(
                purchase_id=self.purchase.id,
                new_status="shipped",
                principal=principal_for(self.super_admin),
            )

    def test_plain_user_cannot_transition_own_order(self):
        with self.assertRaises(PurchaseForbidden):
            transition_purchase(
                purchase_id=self.purchase.id,
                new_status=BloodPurchase.STATUS_VERIFIED,
                principal=principal_for(self.buyer),
            )

    def test_other_user_gets_not_found(self):
        with self.assertRaises(PurchaseNotFound):
            transition_purchase(
                purchase_id=self.purchase.id,
                new_status=BloodPurchase.STATUS_VERIFIED,
                principal=principal_for(self.other_buyer),
            )

    def test_admin_of_other_entity_gets_not_found(self):
        with self.assertRaises(PurchaseNotFound):
            transition_purchase(
                purchase_id=self.purchase.id,
                new_status=BloodPurchase.STATUS_VERIFIED,
                principal=principal_for(self.other_org_admin),
            )

    def test_admin_notes_and_pickup_details_are_merged(self):
        admin = principal_for(self.org_admin)
        self._advance(admin, FORWARD[:2])

        purchase = transition_purchase(
            purchase_id=self.purchase.id,
            new_status=BloodPurchase.STATUS_READY,
            principal=admin,
            admin_notes="Bring patient ID",
            pickup_details={"address": "Dhanmondi 27", "time": "10:00"},
        )
        purchase = transition_purchase(
            purchase_id=self.purchase.id,
            new_status=BloodPurchase.STATUS_COMPLETED,
            principal=admin,
            pickup_details={"instructions": "Counter 3"},
        )

        self.assertEqual(purchase.admin_notes, "Bring patient ID")
        self.assertEqual(
            purchase.pickup_details,
            {"address": "Dhanmondi 27", "time": "10:00", "instructions": "Counter 3"},
        )
        self.assertEqual(purchase.status_history[3]["note"], "Bring patient ID")

    def test_unknown_pickup_field_is_rejected(self):
        with self.assertRaises(PurchaseValidationError):
            transition_purchase(
                purchase_id=self.purchase.id,
                new_status=BloodPurchase.STATUS_VERIFIED,
                principal=principal_for(self.super_admin),
                pickup_details={"drone": "yes"},
            )

        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        self.assertEqual(purchase.status, BloodPurchase.STATUS_PENDING)

    def test_terminal_orders_are_immutable(self):
        admin = principal_for(self.super_admin)
        self._advance(admin, FORWARD)

        for status in [s for s, _ in BloodPurchase.STATUSES]:
            with self.subTest(status=status):
                with self.assertRaises(InvalidTransition):
                    transition_purchase(
                        purchase_id=self.purchase.id, new_status=status, principal=admin
                    )

        with self.assertRaises(PurchaseConflict):
            cancel_purchase(purchase_id=self.purchase.id, principal=admin)

        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        self.assertEqual(purchase.status, BloodPurchase.STATUS_COMPLETED)
        self.assertEqual(len(purchase.status_history), 5)

    def test_model_refuses_to_reopen_terminal_order(self):
        self._advance(principal_for(self.super_admin), FORWARD)

        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        purchase.status = BloodPurchase.STATUS_PENDING
        purchase.status_history = [*purchase.status_history, {"status": "pending"}]

        with self.assertRaises(ValueError):
            purchase.save()

    def test_model_refuses_to_change_tracking_number(self):
        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        purchase.tracking_number = "BL000000-000000"

        with self.assertRaises(ValueError):
            purchase.save()

    def test_model_refuses_to_rewrite_history(self):
        purchase = BloodPurchase.objects.get(id=self.purchase.id)
        purchase.status_history = [{**purchase.status_history[0], "note": "edited"}]

        with self.assertRaises(ValueError):
            purchase.save()


class CancelPurchaseTests(TestCase):
    def setUp(self):
        self.org = make_organization()
        self.buyer = make_user("buyer@example.com")
        self.other_buyer = make_user("other@example.com")
        self.org_admin = make_user(
            "orgadmin@example.com", role=ROLE_ORG_ADMIN, organization=self.org
        )

        self.purchase = create_purchase(
            draft=make_draft(source_id=self.org.id),
            principal=principal_for(self.buyer),
        )

    def test_purchaser_can_cancel(self):
        purchase = cancel_purchase(
            purchase_id=self.purchase.id, principal=principal_for(self.buyer)
        )

        self.assertEqual(purchase.status, BloodPurchase.STATUS_CANCELLED)
        self.assertEqual(purchase.status_history[-1]["note"], NOTE_CANCELLED_BY_USER)

    def test_scoped_admin_can_cancel_with_reason(self):
        purchase = cancel_purchase(
            purchase_id=self.purchase.id,
            principal=principal_for(self.org_admin),
            reason="Out of stock",
        )

        self.assertEqual(
            purchase.status_history[-1]["note"], f"{NOTE_CANCELLED_BY_ADMIN}: Out of stock"
        )

    def test_other_user_gets_not_found(self):
        with self.assertRaises(PurchaseNotFound):
            cancel_purchase(
                purchase_id=self.purchase.id, principal=principal_for(self.other_buyer)
            )

    def test_cancelling_twice_is_a_conflict(self):
        principal = principal_for(self.buyer)
        cancel_purchase(purchase_id=self.purchase.id, principal=principal)

        with self.assertRaises(PurchaseConflict):
            cancel_purchase(purchase_id=self.purchase.id, principal=principal)

    def test_cancel_from_mid_lifecycle(self):
        admin = principal_for(self.org_admin)
        transition_purchase(
            purchase_id=self.purchase.id,
            new_status=BloodPurchase.STATUS_VERIFIED,
            principal=admin,
        )

        purchase = cancel_purchase(purchase_id=self.purchase.id, principal=principal_for(self.buyer))
        self.assertEqual(
            [e["status"] for e in purchase.status_history],
            ["pending", "verified", "cancelled"],
        )


class CrossUserVisibilityTests(TestCase):
    """
    User A buys from organization X:
    - user B cannot see it (NOT FOUND)
    - X's admin can
    - A can
    """

    def setUp(self):
        self.org_x = make_organization("X Blood Bank")
        self.user_a = make_user("a@example.com")
        self.user_b = make_user("b@example.com")
        self.admin_x = make_user("x-admin@example.com", role=ROLE_ORG_ADMIN, organization=self.org_x)

        self.purchase = create_purchase(
            draft=make_draft(source_id=self.org_x.id), principal=principal_for(self.user_a)
        )

    def test_user_b_gets_not_found(self):
        with self.assertRaises(PurchaseNotFound):
            get_purchase(purchase_id=self.purchase.id, principal=principal_for(self.user_b))

    def test_admin_of_x_sees_it(self):
        found = get_purchase(purchase_id=self.purchase.id, principal=principal_for(self.admin_x))
        self.assertEqual(found.id, self.purchase.id)

    def test_owner_sees_it(self):
        found = get_purchase(purchase_id=self.purchase.id, principal=principal_for(self.user_a))
        self.assertEqual(found.id, self.purchase.id)

    def test_malformed_id_is_not_found(self):
        with self.assertRaises(PurchaseNotFound):
            get_purchase(purchase_id="not-a-uuid", principal=principal_for(self.user_a))

    def test_datastore_failure_is_unavailable(self):
        with mock.patch(
            "django.db.models.sql.compiler.SQLCompiler.execute_sql",
            side_effect=OperationalError("db down"),
        ):
            with self.assertRaises(PurchaseUnavailable):
                get_purchase(purchase_id=self.purchase.id, principal=principal_for(self.user_a))
