# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS
# =========================================================
# A role says WHO the caller is. Which entity an admin belongs to
# lives on the user row (organization / hospital FK).
ROLE_USER = "user"
ROLE_ORG_ADMIN = "org_admin"
ROLE_HOSPITAL_ADMIN = "hospital_admin"
ROLE_SUPER_ADMIN = "super_admin"

ROLE_CHOICES = [
    (ROLE_USER, "User"),
    (ROLE_ORG_ADMIN, "Organization Admin"),
    (ROLE_HOSPITAL_ADMIN, "Hospital Admin"),
    (ROLE_SUPER_ADMIN, "Super Admin"),
]

ADMIN_ROLES = {
    ROLE_ORG_ADMIN,
    ROLE_HOSPITAL_ADMIN,
    ROLE_SUPER_ADMIN,
}

ALL_ROLES = {ROLE_USER, *ADMIN_ROLES}


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views protect capabilities, not raw roles.
# Row-level scope (which orders) is decided by purchases.services.scoping.
CAP_PURCHASES_CREATE = "purchases.create"
CAP_PURCHASES_VIEW = "purchases.view"
CAP_PURCHASES_TRANSITION = "purchases.transition"
CAP_PURCHASES_CANCEL = "purchases.cancel"
CAP_PURCHASES_STATS = "purchases.stats"

ALL_CAPABILITIES = {
    CAP_PURCHASES_CREATE,
    CAP_PURCHASES_VIEW,
    CAP_PURCHASES_TRANSITION,
    CAP_PURCHASES_CANCEL,
    CAP_PURCHASES_STATS,
}


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_SUPER_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_ORG_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_HOSPITAL_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_USER: {
        CAP_PURCHASES_CREATE,
        CAP_PURCHASES_VIEW,
        CAP_PURCHASES_CANCEL,
        # stats over their own orders only (scoping enforces it)
        CAP_PURCHASES_STATS,
        # deliberately NOT transition: users only ever cancel
    },
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def capabilities_for(user) -> set[str]:
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def has_capability(user, capability: str) -> bool:
    return capability in capabilities_for(user)


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        view.required_capability = CAP_PURCHASES_TRANSITION

    Views serving several methods may map them instead:
        view.required_capabilities = {"GET": CAP_PURCHASES_VIEW, "POST": CAP_PURCHASES_CREATE}
    """

    def _required_for(self, request, view) -> Optional[str]:
        per_method = getattr(view, "required_capabilities", None)
        if per_method and request.method in per_method:
            return per_method[request.method]
        return getattr(view, "required_capability", None)

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = self._required_for(request, view)
        if not required:
            # Deny-by-default to avoid accidental open endpoints
            return False

        return has_capability(user, required)

