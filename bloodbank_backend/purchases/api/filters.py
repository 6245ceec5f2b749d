# purchases/api/filters.py

"""
LIST / STATS QUERY PARAMETERS

django-filter parses and validates the query string; the cleaned
values are handed to purchases.services.scoping.build_filter, which
decides what the caller may actually see. The FilterSet never filters
a queryset on its own ("all" would otherwise be matched literally).
"""

from __future__ import annotations

import django_filters
from django import forms

from purchases.models import BloodPurchase
from purchases.services.exceptions import PurchaseValidationError
from sources.refs import SOURCE_TYPE_CHOICES

ALL_CHOICE = [("all", "All")]


class IntegerFilter(django_filters.NumberFilter):
    field_class = forms.IntegerField


class PurchaseFilterSet(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=ALL_CHOICE + BloodPurchase.STATUSES)
    blood_type = django_filters.ChoiceFilter(choices=ALL_CHOICE + BloodPurchase.BLOOD_TYPES)
    urgency = django_filters.ChoiceFilter(choices=ALL_CHOICE + BloodPurchase.URGENCIES)
    source_type = django_filters.ChoiceFilter(choices=ALL_CHOICE + SOURCE_TYPE_CHOICES)
    source_id = IntegerFilter(min_value=1)
    date_from = django_filters.DateFilter()
    date_to = django_filters.DateFilter()

    class Meta:
        model = BloodPurchase
        fields = [
            "status",
            "blood_type",
            "urgency",
            "source_type",
            "source_id",
            "date_from",
            "date_to",
        ]


def requested_filters(query_params) -> dict:
    """
    Validate query params and return only the ones actually supplied.

    Raises PurchaseValidationError with one entry per bad parameter.
    """
    filterset = PurchaseFilterSet(data=query_params, queryset=BloodPurchase.objects.none())

    if not filterset.is_valid():
        raise PurchaseValidationError(
            "Invalid filter parameters",
            errors=[
                {"field": field, "message": message}
                for field, messages in filterset.errors.items()
                for message in messages
            ],
        )

    return {
        key: value
        for key, value in filterset.form.cleaned_data.items()
        if value not in (None, "")
    }
