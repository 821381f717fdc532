"""Validation of request fields."""

from __future__ import annotations

import re
from typing import Any

_COORDINATES = re.compile(
    r"\A\s*[+-]?\d*\.?\d{1,8}\s*,\s*[+-]?\d*\.?\d{1,8}\s*\Z", re.ASCII
)
_DATETIME = re.compile(r"\A\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}\Z", re.ASCII)
_ALPHANUM = re.compile(r"\A[A-Za-z0-9]+\Z")


class ValidationError(ValueError):
    """Raised when a request field does not pass validation."""


def is_valid_coordinates(value: Any) -> bool:
    return isinstance(value, str) and _COORDINATES.match(value) is not None


def is_valid_datetime(value: Any) -> bool:
    return isinstance(value, str) and _DATETIME.match(value) is not None


def _require_string(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{name} is required")
    return value


def validate_username(value: Any) -> str:
    """Require an alphanumeric username of 4 to 16 characters."""
    value = _require_string("username", value)
    if not _ALPHANUM.match(value):
        raise ValidationError("username must be alphanumeric")
    if not 4 <= len(value) <= 16:
        raise ValidationError("username must be 4 to 16 characters long")
    return value


def validate_coordinates(value: Any) -> str:
    value = _require_string("coordinates", value)
    if not is_valid_coordinates(value):
        raise ValidationError(f"invalid coordinates: {value!r}")
    return value


def validate_datetime(value: Any) -> str:
    value = _require_string("datetime", value)
    if not is_valid_datetime(value):
        raise ValidationError(f"invalid datetime: {value!r}")
    return value


def require_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value <= 0:
        raise ValidationError(f"{name} must be greater than 0")
    return value


def require_non_negative_number(name: str, value: Any) -> float:
    """Require a number that is present (non-zero) and not negative."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    if value == 0:
        raise ValidationError(f"{name} is required")
    if value < 0:
        raise ValidationError(f"{name} must not be negative")
    return float(value)