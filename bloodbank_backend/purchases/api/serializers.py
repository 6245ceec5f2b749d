# purchases/api/serializers.py

from decimal import Decimal

from rest_framework import serializers

from purchases.models import BloodPurchase
from sources.refs import SOURCE_TYPE_CHOICES

# Upper bound of the integer columns source_id / units / patient_age are stored in
MAX_DB_INT = 2_147_483_647


def _amount(**kwargs):
    return serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), **kwargs
    )


# ---------------- INPUT ----------------
class PricingSerializer(serializers.Serializer):
    """
    Shape and range of the quote. Zero amounts pass here and are
    rejected by purchases.services.pricing (zero counts as missing).
    """

    bloodPrice = _amount()
    processingFee = _amount()
    screeningFee = _amount()
    serviceCharge = _amount()
    additionalFees = serializers.DictField(child=_amount(), required=False)
    totalCost = _amount()


class PurchaseCreateSerializer(serializers.Serializer):
    """
    Request body for POST /api/purchases/.

    DRF reports every invalid field in one response; the cleaned values
    are handed to purchase_service.create_purchase.
    """

    source_type = serializers.ChoiceField(choices=SOURCE_TYPE_CHOICES)
    source_id = serializers.IntegerField(min_value=1, max_value=MAX_DB_INT)
    source_name = serializers.CharField(max_length=255)
    blood_type = serializers.ChoiceField(choices=BloodPurchase.BLOOD_TYPES)
    units = serializers.IntegerField(min_value=1, max_value=MAX_DB_INT)
    pricing = PricingSerializer()
    patient_name = serializers.CharField(max_length=255)
    patient_age = serializers.IntegerField(
        min_value=0, max_value=MAX_DB_INT, required=False, allow_null=True
    )
    patient_condition = serializers.CharField(required=False, allow_blank=True)
    contact_name = serializers.CharField(max_length=255)
    contact_phone = serializers.CharField(max_length=50)
    contact_email = serializers.EmailField(required=False, allow_blank=True, max_length=254)
    urgency = serializers.ChoiceField(choices=BloodPurchase.URGENCIES)
    required_date = serializers.DateTimeField()
    payment_method = serializers.ChoiceField(
        choices=BloodPurchase.PAYMENT_METHODS, required=False, allow_blank=True
    )
    user_notes = serializers.CharField(required=False, allow_blank=True)


class PickupDetailsSerializer(serializers.Serializer):
    address = serializers.CharField(required=False, allow_blank=True)
    date = serializers.CharField(required=False, allow_blank=True)
    time = serializers.CharField(required=False, allow_blank=True)
    instructions = serializers.CharField(required=False, allow_blank=True)


class StatusUpdateSerializer(serializers.Serializer):
    # Plain CharField: an unknown status is a lifecycle error (409), not a 400
    status = serializers.CharField()
    note = serializers.CharField(required=False, allow_blank=True)
    admin_notes = serializers.CharField(required=False, allow_blank=True)
    pickup_details = PickupDetailsSerializer(required=False)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True)


# ---------------- OUTPUT ----------------
class StatusHistoryEntrySerializer(serializers.Serializer):
    status = serializers.CharField()
    timestamp = serializers.CharField()
    actor = serializers.CharField(allow_null=True)
    note = serializers.CharField(allow_blank=True)


class BloodPurchaseSerializer(serializers.ModelSerializer):
    purchased_by = serializers.SerializerMethodField()
    status_history = StatusHistoryEntrySerializer(many=True, read_only=True)
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = BloodPurchase
        fields = [
            "id",
            "tracking_number",
            "purchased_by",
            "source_type",
            "source_id",
            "source_name",
            "blood_type",
            "units",
            "expiry_date",
            "pricing",
            "total_cost",
            "patient_name",
            "patient_age",
            "patient_condition",
            "contact_name",
            "contact_phone",
            "contact_email",
            "urgency",
            "required_date",
            "status",
            "status_history",
            "pickup_details",
            "payment_status",
            "payment_method",
            "admin_notes",
            "user_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_purchased_by(self, obj) -> dict:
        user = obj.purchased_by
        return {
            "id": str(user.id),
            "email": user.email,
            "name": user.full_name,
            "phone": user.phone,
        }
