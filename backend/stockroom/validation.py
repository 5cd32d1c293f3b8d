from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import DIRECTIONS, MAX_QUANTITY, ROLES


# Maximum price for decimal(10,2): 99,999,999.99
MAX_PRICE = Decimal("99999999.99")

# Integer columns are 32-bit signed
MIN_INTEGER = -2_147_483_648
MAX_INTEGER = 2_147_483_647


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level: the addressed row does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_integer(key: str, value: Any) -> int:
    number = _parse_integer(key, value)
    if not MIN_INTEGER <= number <= MAX_INTEGER:
        raise ValidationError(f"{key} is out of range")
    return number


def _parse_integer(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_decimal(key: str, value: Any, scale: int) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, float):
        # Go through repr so 19.99 stays 19.99 rather than its binary expansion
        value = repr(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{key} must be a number")
    try:
        dec = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if dec.as_tuple().exponent < -scale:
        raise ValidationError(f"{key} cannot have more than {scale} decimal places")
    return dec.quantize(Decimal(1).scaleb(-scale))


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return _coerce_integer(col.key, value)

    # Fixed-point decimals (price)
    if isinstance(coltype, Numeric):
        return _coerce_decimal(col.key, value, coltype.scale or 0)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be a string")
        return value.strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for required text fields
        if isinstance(col.type, (String, Text)) and k in required:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price" in patch and patch["price"] is not None:
        price = patch["price"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed {MAX_PRICE:,}")

    if "quantity" in patch and patch["quantity"] is not None:
        if patch["quantity"] < 0:
            raise ValidationError("quantity must be >= 0")
        if patch["quantity"] > MAX_QUANTITY:
            raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY:,}")


def enforce_rules_stock_movement(patch: dict) -> None:
    if patch.get("type") not in DIRECTIONS:
        raise ValidationError("type must be IN or OUT")
    if patch.get("quantity") is None or patch["quantity"] <= 0:
        raise ValidationError("quantity must be > 0")
    if patch["quantity"] > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY:,}")


def enforce_rules_profile(patch: dict) -> None:
    if "role" in patch and patch["role"] not in ROLES:
        raise ValidationError("role must be admin or staff")


def parse_int_arg(name: str, raw: str | None) -> int | None:
    """Query-string integer; empty means absent."""
    if raw is None or raw == "":
        return None
    return _coerce_integer(name, raw)
