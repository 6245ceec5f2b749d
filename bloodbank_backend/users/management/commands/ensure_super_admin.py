"""
PATH: users/management/commands/ensure_super_admin.py

Production-safe super admin bootstrap.

- Reads SUPER_ADMIN_EMAIL + SUPER_ADMIN_PASSWORD from the environment
  (nothing is compiled in).
- Idempotent: creates the super admin if missing; otherwise re-asserts
  role/flags and resets the password to the env value.
- Never prints the password.
"""

from __future__ import annotations

import logging

import environ
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from permissions.roles import ROLE_SUPER_ADMIN

logger = logging.getLogger(__name__)

env = environ.Env()


class Command(BaseCommand):
    help = "Create/update the super admin from SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD (idempotent)."

    def handle(self, *args, **options):
        email = env.str("SUPER_ADMIN_EMAIL", default="").strip()
        password = env.str("SUPER_ADMIN_PASSWORD", default="").strip()

        if not email or not password:
            self.stdout.write(self.style.WARNING("SUPER_ADMIN_* env vars not set. Skipping."))
            return

        User = get_user_model()

        with transaction.atomic():
            user = User.objects.select_for_update().filter(email__iexact=email).first()

            if user is None:
                User.objects.create_superuser(email=email, password=password)
                logger.info("Super admin created", extra={"email": email})
                self.stdout.write(self.style.SUCCESS(f"Super admin ensured: {email} (created)"))
                return

            user.role = ROLE_SUPER_ADMIN
            user.organization = None
            user.hospital = None
            user.is_active = True
            user.is_staff = True
            user.is_superuser = True
            user.set_password(password)
            user.save()

        logger.info("Super admin updated", extra={"email": email})
        self.stdout.write(self.style.SUCCESS(f"Super admin ensured: {email} (updated)"))
