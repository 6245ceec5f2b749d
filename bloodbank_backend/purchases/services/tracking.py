# purchases/services/tracking.py

"""
TRACKING NUMBER GENERATION

Format:  <PREFIX><last 6 digits of epoch millis>-<6 random digits>
Example: BL482913-004217

The generator is only probabilistically unique; the unique constraint
on BloodPurchase.tracking_number is the real guarantee and
create_purchase() retries on collision.
"""

from __future__ import annotations

import secrets
import time
from typing import Callable, Optional

from django.conf import settings


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def generate_tracking_number(
    prefix: Optional[str] = None,
    *,
    clock: Callable[[], int] = _epoch_millis,
) -> str:
    """
    Build a fresh tracking number.

    `clock` returns epoch milliseconds; tests inject a frozen clock to
    exercise the random suffix on its own.
    """
    if prefix is None:
        prefix = settings.PURCHASE_TRACKING_PREFIX

    stamp = str(clock())[-6:].rjust(6, "0")
    suffix = f"{secrets.randbelow(1_000_000):06d}"

    return f"{prefix}{stamp}-{suffix}"
