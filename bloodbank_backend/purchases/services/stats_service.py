# purchases/services/stats_service.py

"""
PURCHASE DASHBOARD STATS

Read-only aggregation over the caller's SCOPED queryset: a super admin
gets platform-wide numbers, an entity admin gets their entity, a user
gets their own orders. The same filters the listing accepts narrow it
further.

Revenue = sum of the quoted total over COMPLETED orders only.
Windows (today / this week / this month) use the server's current
timezone; weeks start on Monday.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Optional

from django.db import DatabaseError
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from permissions.principal import Principal
from purchases.models import BloodPurchase
from purchases.services.exceptions import PurchaseUnavailable
from purchases.services.purchase_lifecycle import IN_PROGRESS_STATES, STATUSES
from purchases.services.scoping import scoped_queryset
from sources.refs import SOURCE_TYPE_CHOICES

logger = logging.getLogger(__name__)

RECENT_DAYS = 30
MONTHS_OF_REVENUE = 12


def _money(x) -> str:
    """
    JSON-safe money string.
    """
    if x is None:
        return "0.00"
    if isinstance(x, Decimal):
        return f"{x:.2f}"
    return f"{Decimal(str(x)):.2f}"


def _local_midnight(d) -> datetime:
    tz = timezone.get_current_timezone()
    return timezone.make_aware(datetime.combine(d, time.min), tz)


def _month_starts(today, count: int) -> list:
    """First day of each of the last `count` months, oldest first (current month last)."""
    year, month = today.year, today.month
    out = []
    for _ in range(count):
        out.append(today.replace(year=year, month=month, day=1))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(out))


def _distribution(qs, field: str, keys) -> dict:
    counts = {key: 0 for key in keys}
    for row in qs.values(field).annotate(count=Count("id")):
        counts[row[field]] = row["count"]
    return counts


def _windows(qs, now: datetime) -> dict:
    today = timezone.localtime(now).date()

    today_start = _local_midnight(today)
    week_start = _local_midnight(today - timedelta(days=today.weekday()))
    month_start = _local_midnight(today.replace(day=1))
    recent_start = now - timedelta(days=RECENT_DAYS)

    return qs.aggregate(
        today=Count("id", filter=Q(created_at__gte=today_start)),
        this_week=Count("id", filter=Q(created_at__gte=week_start)),
        this_month=Count("id", filter=Q(created_at__gte=month_start)),
        recent=Count("id", filter=Q(created_at__gte=recent_start)),
    )


def _blood_type_stats(completed) -> list[dict]:
    rows = (
        completed.values("blood_type")
        .annotate(
            count=Count("id"),
            total_units=Sum("units"),
            total_revenue=Sum("total_cost"),
        )
        .order_by("-count", "blood_type")
    )
    return [
        {
            "blood_type": row["blood_type"],
            "count": row["count"],
            "total_units": row["total_units"] or 0,
            "total_revenue": _money(row["total_revenue"]),
        }
        for row in rows
    ]


def _source_type_stats(completed) -> list[dict]:
    rows = (
        completed.values("source_type")
        .annotate(count=Count("id"), revenue=Sum("total_cost"))
        .order_by("source_type")
    )
    return [
        {
            "source_type": row["source_type"],
            "count": row["count"],
            "revenue": _money(row["revenue"]),
        }
        for row in rows
    ]


def _monthly_revenue(completed, now: datetime) -> list[dict]:
    today = timezone.localtime(now).date()
    months = _month_starts(today, MONTHS_OF_REVENUE)
    since = _local_midnight(months[0])

    buckets = {m.strftime("%Y-%m"): {"revenue": Decimal("0"), "count": 0} for m in months}

    rows = (
        completed.filter(created_at__gte=since)
        .annotate(month=TruncMonth("created_at"))
        .values("month")
        .annotate(revenue=Sum("total_cost"), count=Count("id"))
        .order_by("month")
    )
    for row in rows:
        key = row["month"].strftime("%Y-%m")
        if key in buckets:
            buckets[key] = {"revenue": row["revenue"] or Decimal("0"), "count": row["count"]}

    return [
        {"month": key, "revenue": _money(value["revenue"]), "count": value["count"]}
        for key, value in buckets.items()
    ]


def get_stats(
    *,
    principal: Principal,
    requested: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Dashboard numbers for the caller's scope.

    `now` is injectable so window boundaries can be tested deterministically.
    """
    now = now or timezone.now()

    try:
        qs = scoped_queryset(principal, requested)
        completed = qs.filter(status=BloodPurchase.STATUS_COMPLETED)

        by_status = _distribution(qs, "status", STATUSES)
        revenue = completed.aggregate(total=Sum("total_cost"))["total"]

        stats = {
            "total_purchases": sum(by_status.values()),
            "pending_approvals": by_status[BloodPurchase.STATUS_PENDING],
            "completed_purchases": by_status[BloodPurchase.STATUS_COMPLETED],
            "in_progress_purchases": sum(by_status[s] for s in IN_PROGRESS_STATES),
            "total_revenue": _money(revenue),
            "by_status": by_status,
            "by_blood_type": _distribution(
                qs, "blood_type", [value for value, _ in BloodPurchase.BLOOD_TYPES]
            ),
            "by_urgency": _distribution(
                qs, "urgency", [value for value, _ in BloodPurchase.URGENCIES]
            ),
            "by_source_type": _distribution(
                qs, "source_type", [value for value, _ in SOURCE_TYPE_CHOICES]
            ),
            "blood_type_stats": _blood_type_stats(completed),
            "source_type_stats": _source_type_stats(completed),
            "monthly_revenue": _monthly_revenue(completed, now),
        }

        windows = _windows(qs, now)
    except DatabaseError as exc:
        logger.error(
            "Datastore failure computing purchase stats",
            extra={"principal_kind": principal.kind, "error": str(exc)},
        )
        raise PurchaseUnavailable() from exc

    stats["windows"] = {
        "today": windows["today"],
        "this_week": windows["this_week"],
        "this_month": windows["this_month"],
    }
    stats["recent_purchases"] = windows["recent"]

    return stats
