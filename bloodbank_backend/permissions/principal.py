# permissions/principal.py

"""
PRINCIPAL RESOLUTION

Every purchase service call receives a Principal, never a raw user:

    Principal(kind, user_id, scope)

- kind      one of user / org_admin / hospital_admin / super_admin
- user_id   the authenticated user's id (the actor written into history)
- scope     the Source an entity admin is bound to; None otherwise

A principal is derived per request from the authenticated user and is
never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from permissions.roles import (
    ROLE_CAPABILITIES,
    ROLE_HOSPITAL_ADMIN,
    ROLE_ORG_ADMIN,
    ROLE_SUPER_ADMIN,
    ROLE_USER,
)
from purchases.services.exceptions import PurchaseForbidden
from sources.refs import HospitalSource, OrganizationSource, Source


@dataclass(frozen=True)
class Principal:
    kind: str
    user_id: object
    scope: Optional[Source] = None

    @property
    def is_super_admin(self) -> bool:
        return self.kind == ROLE_SUPER_ADMIN

    @property
    def is_entity_admin(self) -> bool:
        return self.kind in (ROLE_ORG_ADMIN, ROLE_HOSPITAL_ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.is_super_admin or self.is_entity_admin

    def can(self, capability: str) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.kind, set())

    @property
    def scope_id(self) -> Optional[int]:
        return self.scope.id if self.scope is not None else None

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "user_id": str(self.user_id),
            "source_type": self.scope.source_type if self.scope is not None else None,
            "source_id": self.scope_id,
        }


def resolve_principal(user) -> Principal:
    """
    Map an authenticated user to a Principal.

    Raises PurchaseForbidden when:
    - the user is anonymous / inactive
    - the role is unknown
    - an entity admin is not linked to its entity (misconfigured account)
    """
    if user is None or not getattr(user, "is_authenticated", False) or not user.is_active:
        raise PurchaseForbidden("Authentication required")

    role = getattr(user, "role", None)

    if role == ROLE_SUPER_ADMIN:
        return Principal(kind=ROLE_SUPER_ADMIN, user_id=user.pk)

    if role == ROLE_ORG_ADMIN:
        if not user.organization_id:
            raise PurchaseForbidden("Organization admin is not linked to an organization")
        return Principal(
            kind=ROLE_ORG_ADMIN,
            user_id=user.pk,
            scope=OrganizationSource(user.organization_id),
        )

    if role == ROLE_HOSPITAL_ADMIN:
        if not user.hospital_id:
            raise PurchaseForbidden("Hospital admin is not linked to a hospital")
        return Principal(
            kind=ROLE_HOSPITAL_ADMIN,
            user_id=user.pk,
            scope=HospitalSource(user.hospital_id),
        )

    if role == ROLE_USER:
        return Principal(kind=ROLE_USER, user_id=user.pk)

    raise PurchaseForbidden(f"Unknown role: {role!r}")
