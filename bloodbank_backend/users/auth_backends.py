"""
PATH: users/auth_backends.py

AUTH BACKEND: Email OR Username login (not both)

- identifier containing "@" -> email lookup, otherwise username lookup
- both email= and username= supplied explicitly -> authentication fails
- inactive users never authenticate

Used by django.contrib.auth.authenticate() (login view, Django admin).
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import BaseBackend


class EmailOrUsernameBackend(BaseBackend):
    def authenticate(self, request, username=None, password=None, **kwargs):
        User = get_user_model()

        email_kw = (kwargs.get("email") or "").strip()
        username_kw = (kwargs.get("username") or "").strip()

        if email_kw and username_kw:
            return None

        identifier = (username or email_kw or username_kw or "").strip()
        if not identifier or password is None:
            return None

        lookup = {"email__iexact": identifier} if "@" in identifier else {"username__iexact": identifier}

        user = User.objects.filter(**lookup).first()
        if user is None or not user.is_active:
            return None

        if user.check_password(password):
            return user

        return None

    def get_user(self, user_id):
        User = get_user_model()
        return User.objects.filter(pk=user_id).first()
