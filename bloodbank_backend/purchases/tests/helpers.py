# purchases/tests/helpers.py

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from permissions.principal import resolve_principal
from permissions.roles import ROLE_USER
from sources.models import Hospital, Organization

User = get_user_model()

PASSWORD = "pass-12345"


def make_organization(name="City Blood Bank"):
    return Organization.objects.create(name=name)


def make_hospital(name="General Hospital"):
    return Hospital.objects.create(name=name)


def make_user(email, role=ROLE_USER, **extra):
    return User.objects.create_user(email=email, password=PASSWORD, role=role, **extra)


def principal_for(user):
    return resolve_principal(user)


def make_draft(*, source_type="organization", source_id=1, **overrides):
    """A create payload as PurchaseCreateSerializer would clean it (and as a client may post it)."""
    draft = {
        "source_type": source_type,
        "source_id": source_id,
        "source_name": "City Blood Bank",
        "blood_type": "O+",
        "units": 2,
        "pricing": {
            "bloodPrice": 1500,
            "processingFee": 200,
            "screeningFee": 300,
            "serviceCharge": 100,
            "additionalFees": {},
            "totalCost": 2100,
        },
        "patient_name": "Rahim Uddin",
        "patient_age": 42,
        "patient_condition": "Surgery",
        "contact_name": "Karim Uddin",
        "contact_phone": "+8801700000000",
        "contact_email": "karim@example.com",
        "urgency": "urgent",
        "required_date": timezone.now() + timedelta(days=2),
        "user_notes": "",
    }
    draft.update(overrides)
    return draft
