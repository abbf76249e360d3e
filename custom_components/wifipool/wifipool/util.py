"""Small utility helpers used across the integration.

This module intentionally avoids Home Assistant imports so it can be reused by
the internal API package.
"""

from __future__ import annotations

import math
import re
from typing import Any

# -----------------------------------------------------------------------------
# Conversions
# -----------------------------------------------------------------------------


def as_float(value: Any) -> float | None:
    """Convert a value to a finite float when possible.

    Args:
        value: Value to convert.

    Returns:
        A float when the input is numeric or a numeric string and finite;
        otherwise `None`.
    """
    result: float | None = None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        result = float(value)
    elif isinstance(value, str):
        t = value.strip()
        if not t:
            return None
        try:
            result = float(t)
        except ValueError:
            return None
    if result is None or not math.isfinite(result):
        return None
    return result


def clamp_int(value: Any, *, minimum: int, maximum: int, default: int) -> int:
    """Coerce a value to an int within [minimum, maximum].

    Args:
        value: Raw setting value.
        minimum: Lower bound.
        maximum: Upper bound.
        default: Used when the value is not numeric.

    Returns:
        Clamped int.
    """
    number = as_float(value)
    if number is None:
        number = float(default)
    return max(minimum, min(maximum, int(number)))


# -----------------------------------------------------------------------------
# Log masking
# -----------------------------------------------------------------------------

_EMAIL_LOCAL = re.compile(r"([A-Za-z0-9._%+-]{2})[A-Za-z0-9._%+-]*(@)")
_EMAIL_HOST = re.compile(r"([A-Za-z0-9._%+-]{2})[A-Za-z0-9._%+-]*(\.[A-Za-z]{2,})")


def redact_email(value: str) -> str:
    """Keep only the leading characters of an email's local and host parts."""
    if not value:
        return value
    masked = _EMAIL_LOCAL.sub(r"\1***\2", value)
    return _EMAIL_HOST.sub(r"\1***\2", masked)


def mask_body(body: dict[str, Any] | None) -> dict[str, Any] | None:
    """Return a copy of a request body that is safe to log.

    Args:
        body: JSON request body.

    Returns:
        Copy with the password replaced and the email redacted.
    """
    if body is None:
        return None
    masked = dict(body)
    if masked.get("password"):
        masked["password"] = "***"
    email = masked.get("email")
    if isinstance(email, str) and email:
        masked["email"] = redact_email(email)
    return masked
