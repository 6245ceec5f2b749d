# purchases/services/pricing.py

"""
PRICING SNAPSHOT VALIDATION

A purchase carries the quote the buyer saw:

    {
        "bloodPrice": ..., "processingFee": ..., "screeningFee": ...,
        "serviceCharge": ..., "additionalFees": {...}, "totalCost": ...
    }

Rules:
- the five named amounts are required, numeric, strictly positive
  (zero counts as missing)
- additionalFees is optional, defaults to {}, must be a mapping of
  non-negative amounts
- every amount fits the stored total: at most 12 digits before the point
- totalCost is trusted as quoted unless PURCHASE_ENFORCE_PRICING_TOTAL
  is on, in which case it must equal the sum of the parts

The snapshot is validated once at creation and never recomputed.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from django.conf import settings

from purchases.services.exceptions import PurchaseValidationError

REQUIRED_PRICE_FIELDS = (
    "bloodPrice",
    "processingFee",
    "screeningFee",
    "serviceCharge",
    "totalCost",
)

TWOPLACES = Decimal("0.01")

# total_cost is a DECIMAL(14, 2) column
MAX_INTEGER_DIGITS = 12
TOO_LARGE_MESSAGE = f"Must have at most {MAX_INTEGER_DIGITS} digits before the decimal point."


def _to_decimal(value):
    """Decimal for int/float/numeric str; None for anything else (bools included)."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        dec = Decimal(str(value))
    elif isinstance(value, str) and value.strip():
        try:
            dec = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None

    if not dec.is_finite():
        return None
    return dec


def _too_large(dec: Decimal) -> bool:
    return dec != 0 and dec.adjusted() >= MAX_INTEGER_DIGITS


def _json_number(dec: Decimal):
    """Keep the snapshot JSON-native: integral amounts as int, others as float."""
    if dec == dec.to_integral_value():
        return int(dec)
    return float(dec)


def validate_pricing(pricing) -> dict:
    """
    Validate a pricing snapshot and return the normalized copy to store.

    Raises PurchaseValidationError listing every offending field.
    """
    if not isinstance(pricing, dict):
        raise PurchaseValidationError(
            "Incomplete pricing information",
            errors=[{"field": "pricing", "message": "Pricing must be an object."}],
        )

    errors: list[dict] = []
    normalized: dict = {}

    for name in REQUIRED_PRICE_FIELDS:
        raw = pricing.get(name)
        field = f"pricing.{name}"

        if raw in (None, "", 0) or raw is False:
            errors.append({"field": field, "message": "This amount is required."})
            continue

        dec = _to_decimal(raw)
        if dec is None:
            errors.append({"field": field, "message": "Must be a number."})
        elif dec < 0:
            errors.append({"field": field, "message": "Must not be negative."})
        elif dec == 0:
            errors.append({"field": field, "message": "This amount is required."})
        elif _too_large(dec):
            errors.append({"field": field, "message": TOO_LARGE_MESSAGE})
        else:
            normalized[name] = _json_number(dec)

    extra = pricing.get("additionalFees")
    if extra is None:
        extra = {}

    if not isinstance(extra, dict):
        errors.append(
            {"field": "pricing.additionalFees", "message": "Must be an object of named fees."}
        )
        extra = {}

    normalized_extra = {}
    for key, raw in extra.items():
        dec = _to_decimal(raw)
        if dec is not None and _too_large(dec):
            errors.append({"field": f"pricing.additionalFees.{key}", "message": TOO_LARGE_MESSAGE})
        elif dec is None or dec < 0:
            errors.append(
                {
                    "field": f"pricing.additionalFees.{key}",
                    "message": "Must be a non-negative number.",
                }
            )
        else:
            normalized_extra[str(key)] = _json_number(dec)

    normalized["additionalFees"] = normalized_extra

    if errors:
        raise PurchaseValidationError("Incomplete pricing information", errors=errors)

    if settings.PURCHASE_ENFORCE_PRICING_TOTAL:
        parts = sum(
            (Decimal(str(normalized[n])) for n in REQUIRED_PRICE_FIELDS if n != "totalCost"),
            Decimal("0"),
        )
        parts += sum((Decimal(str(v)) for v in normalized_extra.values()), Decimal("0"))

        if parts.quantize(TWOPLACES) != Decimal(str(normalized["totalCost"])).quantize(TWOPLACES):
            raise PurchaseValidationError(
                "Pricing does not add up",
                errors=[
                    {
                        "field": "pricing.totalCost",
                        "message": f"Expected {parts.quantize(TWOPLACES)}, got {normalized['totalCost']}.",
                    }
                ],
            )

    return normalized


def total_cost_of(pricing: dict) -> Decimal:
    """Decimal copy of the quoted total (stored alongside the snapshot for SQL sums)."""
    return Decimal(str(pricing["totalCost"])).quantize(TWOPLACES)
