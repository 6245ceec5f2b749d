"""
PATH: users/models.py

CUSTOM USER MODEL

Identity:
- Email is the canonical login identifier.
- Username is optional; the manager derives one from the email local-part.

Roles (see permissions.roles):
- user            buys blood, sees only their own purchases
- org_admin       administers exactly one Organization
- hospital_admin  administers exactly one Hospital
- super_admin     sees and acts on everything

The entity link is enforced in clean(): an org admin without an
organization (or a hospital admin without a hospital) is invalid data.
"""

from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models

from permissions.roles import (
    ROLE_CHOICES,
    ROLE_HOSPITAL_ADMIN,
    ROLE_ORG_ADMIN,
    ROLE_SUPER_ADMIN,
    ROLE_USER,
)


# ---------------- USER MANAGER ----------------
class UserManager(BaseUserManager):
    def _derive_username(self, email: str) -> str:
        base = (email.split("@")[0] or "user").strip().lower()
        candidate = base
        i = 1
        while self.model.objects.filter(username__iexact=candidate).exists():
            i += 1
            candidate = f"{base}{i}"
        return candidate

    def create_user(self, email=None, password=None, **extra_fields):
        """
        Supports:
        - create_user(email="a@b.com", password="x")
        - create_user(email="a@b.com", password="x", username="john")
        - create_user(username="john", password="x")   (email becomes john@local.test)
        """
        username = (extra_fields.get("username") or "").strip()
        email = (email or extra_fields.get("email") or "").strip()

        if not email and not username:
            raise ValueError("Provide at least email or username")

        if not email:
            email = f"{username.lower()}@local.test"

        email = self.normalize_email(email)

        if not username:
            username = self._derive_username(email)

        extra_fields["email"] = email
        extra_fields["username"] = username
        extra_fields.setdefault("role", ROLE_USER)
        extra_fields.setdefault("is_active", True)

        user = self.model(**extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.full_clean()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Superuser must have an email")
        if not password:
            raise ValueError("Superuser must have a password")

        extra_fields.setdefault("role", ROLE_SUPER_ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True")

        return self.create_user(email=email, password=password, **extra_fields)


# ---------------- USER MODEL ----------------
class User(AbstractBaseUser, PermissionsMixin):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    username = models.CharField(max_length=150, unique=True, null=True, blank=True)
    email = models.EmailField(unique=True)

    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=50, blank=True, default="")

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER)

    # Tenant link (exactly one, and only for entity admins)
    organization = models.ForeignKey(
        "sources.Organization",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="admins",
    )
    hospital = models.ForeignKey(
        "sources.Hospital",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="admins",
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["role"], name="users_user_role_idx"),
        ]

    def clean(self):
        if self.email:
            self.email = self.__class__.objects.normalize_email(self.email).strip()
        if self.username is not None:
            self.username = self.username.strip() or None

        errors = {}

        if self.role == ROLE_ORG_ADMIN:
            if not self.organization_id:
                errors["organization"] = "Organization admins must be linked to an organization."
            if self.hospital_id:
                errors["hospital"] = "Organization admins cannot be linked to a hospital."
        elif self.role == ROLE_HOSPITAL_ADMIN:
            if not self.hospital_id:
                errors["hospital"] = "Hospital admins must be linked to a hospital."
            if self.organization_id:
                errors["organization"] = "Hospital admins cannot be linked to an organization."
        else:
            if self.organization_id:
                errors["organization"] = "Only organization admins are linked to an organization."
            if self.hospital_id:
                errors["hospital"] = "Only hospital admins are linked to a hospital."

        if errors:
            raise ValidationError(errors)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        ident = self.username or self.email
        return f"{ident} ({self.role})"
