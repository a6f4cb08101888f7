# core/validation.py

"""
INPUT COERCION HELPERS

Integer quantities only. Booleans are rejected even though bool is an int
subclass, and so are non-integral numbers (float, Decimal, Fraction) and
numeric strings that are not whole numbers.

Text helpers strip whitespace and enforce the column bounds of the field the
value is stored in, so oversized input fails as a domain ValidationError
before anything is written.
"""

from __future__ import annotations

import numbers

from core.exceptions import ValidationError


def _not_an_integer(field_name: str) -> ValidationError:
    return ValidationError(f"{field_name} must be an integer", details={"field": field_name})


def to_int(value, *, field_name: str = "value") -> int:
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required", details={"field": field_name})
    if isinstance(value, bool):
        raise _not_an_integer(field_name)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, numbers.Number):
        # NaN, infinities and complex values fail the conversion itself.
        try:
            whole = int(value)
        except (TypeError, ValueError, OverflowError):
            raise _not_an_integer(field_name)
        if whole != value:
            raise _not_an_integer(field_name)
        return whole
    try:
        return int(value)
    except (TypeError, ValueError):
        raise _not_an_integer(field_name)


def require_positive_int(value, *, field_name: str) -> int:
    v = to_int(value, field_name=field_name)
    if v <= 0:
        raise ValidationError(
            f"{field_name} must be greater than zero", details={"field": field_name}
        )
    return v


def require_non_negative_int(value, *, field_name: str) -> int:
    v = to_int(value, field_name=field_name)
    if v < 0:
        raise ValidationError(
            f"{field_name} cannot be negative", details={"field": field_name}
        )
    return v


def require_text(
    value,
    *,
    field_name: str,
    min_length: int = 1,
    max_length: int | None = None,
) -> str:
    text = clean_text(value)
    if len(text) < min_length:
        if min_length > 1:
            message = f"{field_name} must be at least {min_length} characters"
        else:
            message = f"{field_name} is required"
        raise ValidationError(message, details={"field": field_name})
    return limit_text(text, field_name=field_name, max_length=max_length)


def limit_text(value, *, field_name: str, max_length: int | None) -> str:
    """Cleaned text, or ValidationError when it exceeds max_length."""
    text = clean_text(value)
    if max_length is not None and len(text) > max_length:
        raise ValidationError(
            f"{field_name} must be at most {max_length} characters",
            details={"field": field_name, "max_length": max_length, "length": len(text)},
        )
    return text


def clean_text(value) -> str:
    return "" if value is None else str(value).strip()
