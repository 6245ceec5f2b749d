# sources/admin.py

from django.contrib import admin

from sources.models import Hospital, Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "registration_number", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "registration_number", "email")


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "registration_number", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "registration_number", "email")
