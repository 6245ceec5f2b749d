# purchases/services/scoping.py

"""
SCOPED QUERY BUILDER

The single place where "which purchase orders may this caller see"
is decided. Listing, retrieval, transitions, cancellation and stats
all start from scoped_queryset().

Scope by principal kind:
- user            purchased_by == caller; only narrowing filters apply
                  (status, blood_type, urgency, date range)
- org/hospital    source pinned to the admin's entity; a requested
  admin           source_type/source_id is ignored, never widens
- super_admin     caller filters only; source_id applies only together
                  with source_type (ids are per source kind)
- mine=True       purchased_by == caller whatever the role (/mine/)

A requested value of "all" (or empty) means "no filter".
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from django.db.models import Q, QuerySet

from permissions.principal import Principal
from permissions.roles import ROLE_SUPER_ADMIN, ROLE_USER
from purchases.models import BloodPurchase
from purchases.services.exceptions import PurchaseForbidden
from sources.refs import HospitalSource, OrganizationSource

ALL = "all"

# Filters that can only ever shrink a result set
NARROWING_FILTERS = ("status", "blood_type", "urgency")


def _is_set(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() not in ("", ALL)
    return True


def _narrowing_q(requested: dict) -> Q:
    q = Q()

    for key in NARROWING_FILTERS:
        value = requested.get(key)
        if _is_set(value):
            q &= Q(**{key: value})

    date_from = requested.get("date_from")
    if _is_set(date_from):
        if isinstance(date_from, datetime):
            q &= Q(created_at__gte=date_from)
        elif isinstance(date_from, date):
            q &= Q(created_at__date__gte=date_from)

    date_to = requested.get("date_to")
    if _is_set(date_to):
        if isinstance(date_to, datetime):
            q &= Q(created_at__lte=date_to)
        elif isinstance(date_to, date):
            q &= Q(created_at__date__lte=date_to)

    return q


def _source_q(source) -> Q:
    if isinstance(source, (OrganizationSource, HospitalSource)):
        return Q(source_type=source.source_type, source_id=source.id)
    raise PurchaseForbidden("Administrator scope is not a known source")


def _requested_source_q(requested: dict) -> Q:
    q = Q()

    source_type = requested.get("source_type")
    if not _is_set(source_type):
        return q
    q &= Q(source_type=source_type)

    source_id = requested.get("source_id")
    if _is_set(source_id):
        q &= Q(source_id=source_id)

    return q


def build_filter(
    principal: Principal, requested: Optional[dict] = None, *, mine: bool = False
) -> Q:
    """
    Combine the caller's forced scope with the filters they asked for.

    The forced part is always AND-ed in, so no requested value can
    widen what the principal is allowed to see.
    """
    requested = requested or {}

    if mine or principal.kind == ROLE_USER:
        return Q(purchased_by_id=principal.user_id) & _narrowing_q(requested)

    if principal.is_entity_admin:
        return _source_q(principal.scope) & _narrowing_q(requested)

    if principal.kind == ROLE_SUPER_ADMIN:
        return _requested_source_q(requested) & _narrowing_q(requested)

    raise PurchaseForbidden(f"Unknown principal kind: {principal.kind!r}")


def scoped_queryset(
    principal: Principal, requested: Optional[dict] = None, *, mine: bool = False
) -> QuerySet:
    return BloodPurchase.objects.filter(build_filter(principal, requested, mine=mine))
