# purchases/admin.py

from django.contrib import admin

from purchases.models import BloodPurchase


@admin.register(BloodPurchase)
class BloodPurchaseAdmin(admin.ModelAdmin):
    """
    Read-mostly view. Status changes go through the API so the
    lifecycle rules and the audit trail are applied.
    """

    list_display = (
        "tracking_number",
        "status",
        "blood_type",
        "units",
        "urgency",
        "source_type",
        "source_name",
        "total_cost",
        "payment_status",
        "created_at",
    )
    list_filter = ("status", "blood_type", "urgency", "source_type", "payment_status")
    search_fields = ("tracking_number", "patient_name", "contact_name", "contact_phone", "source_name")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)

    readonly_fields = (
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
        "status",
        "status_history",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
