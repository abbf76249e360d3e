"""Decoders for telemetry samples.

A sample is one object from `harmopool/getStats`:

    {
        "device_sensor_time": "2024-06-01T10:00:00.000Z",
        "device_sensor_data": {"analog": {"0": 7.2}},
        "device_state_data": {"power": {"0": 1}},
    }

Samples arrive oldest first. Decoders scan newest first and never raise on
unexpected shapes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Final, cast

from .client import WifiPoolClient
from .util import as_float

_LOGGER = logging.getLogger(__name__)

FLOW_ANALOG_THRESHOLD: Final = 0.5

# Fields that may carry an on/off reading, in decode priority.
SWITCH_FIELDS: Final[tuple[str, ...]] = ("power", "switch", "relay", "state", "value")


# -----------------------------------------------------------------------------
# Timestamps
# -----------------------------------------------------------------------------


def sample_time_ms(sample: dict[str, Any]) -> int | None:
    """Return the sample timestamp as epoch milliseconds.

    Args:
        sample: Sample object.

    Returns:
        Milliseconds since epoch, or None when missing or unparseable.
    """
    raw: Any = sample.get("device_sensor_time")
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = as_float(raw)
        if value is None:
            return None
        # Bare numbers below ~2001 in ms are taken as seconds.
        return int(value) if value > 1e12 else int(value * 1000)
    if not isinstance(raw, str) or not raw.strip():
        return None
    t = raw.strip()
    if t.endswith("Z"):
        t = t[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(t)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def newest_time_ms(samples: list[dict[str, Any]]) -> int | None:
    """Return the newest parseable timestamp in a sample list."""
    newest: int | None = None
    for sample in samples:
        ts = sample_time_ms(sample)
        if ts is not None and (newest is None or ts > newest):
            newest = ts
    return newest


def _sensor_data(sample: dict[str, Any]) -> dict[str, Any]:
    data: Any = sample.get("device_sensor_data")
    return cast(dict[str, Any], data) if isinstance(data, dict) else {}


def _first_key(obj: dict[str, Any]) -> str | None:
    return next(iter(obj), None)


# -----------------------------------------------------------------------------
# Scalar readings
# -----------------------------------------------------------------------------


def analog_reading(sample: dict[str, Any], *, key: str | None = None) -> float | None:
    """Return the finite analog value of one sample.

    Args:
        sample: Sample object.
        key: Preferred sub-key; the first key is used when it is absent.
    """
    analog_any: Any = _sensor_data(sample).get("analog")
    if not isinstance(analog_any, dict):
        return None
    analog = cast(dict[str, Any], analog_any)
    if key is None or key not in analog:
        key = _first_key(analog)
    if key is None:
        return None
    return as_float(analog.get(key))


def temperature_reading(sample: dict[str, Any]) -> float | None:
    """Return the finite ds18b20 temperature of one sample.

    Accepts both `{"ds18b20": {"temperature": t}}` and the nested
    `{"ds18b20": {"<sensor>": {"temperature": t}}}` shape.
    """
    ds_any: Any = _sensor_data(sample).get("ds18b20")
    if not isinstance(ds_any, dict):
        return None
    ds = cast(dict[str, Any], ds_any)
    if "temperature" in ds:
        value = as_float(ds.get("temperature"))
        if value is not None:
            return value
    key = _first_key(ds)
    if key is None:
        return None
    nested: Any = ds.get(key)
    if isinstance(nested, dict):
        return as_float(cast(dict[str, Any], nested).get("temperature"))
    return None


def latest_analog(
    samples: list[dict[str, Any]], *, key: str | None = None
) -> float | None:
    """Scan newest first for a finite analog value."""
    for sample in reversed(samples):
        value = analog_reading(sample, key=key)
        if value is not None:
            return value
    return None


# -----------------------------------------------------------------------------
# Booleans
# -----------------------------------------------------------------------------


def bool_from_unknown(value: Any) -> bool | None:
    """Decode a direct boolean or 0/1 number."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    return None


def bool_from_object(value: Any) -> bool | None:
    """Decode a nested object: any true field wins, else any false field."""
    if not isinstance(value, dict):
        return None
    saw_false = False
    for item in cast(dict[str, Any], value).values():
        b = bool_from_unknown(item)
        if b is True:
            return True
        if b is False:
            saw_false = True
    return False if saw_false else None


def decode_switch_bool(
    sample: dict[str, Any], *, threshold: float = FLOW_ANALOG_THRESHOLD
) -> tuple[bool | None, str]:
    """Decode an on/off reading from one sample.

    Order: direct fields, nested objects, then analog magnitude against
    `threshold`. The state payload's `power` object is consulted last.

    Returns:
        (value, via) where via names the rule that produced the value.
    """
    data = _sensor_data(sample)
    for field in SWITCH_FIELDS:
        b = bool_from_unknown(data.get(field))
        if b is not None:
            return b, "direct"
    for field in SWITCH_FIELDS:
        b = bool_from_object(data.get(field))
        if b is not None:
            return b, "nested"
    analog = analog_reading(sample)
    if analog is not None:
        return abs(analog) >= threshold, "analog"
    state_any: Any = sample.get("device_state_data")
    if isinstance(state_any, dict):
        power: Any = cast(dict[str, Any], state_any).get("power")
        b = bool_from_unknown(power)
        if b is None:
            b = bool_from_object(power)
        if b is not None:
            return b, "state"
    return None, "unknown"


# -----------------------------------------------------------------------------
# Fetching
# -----------------------------------------------------------------------------


async def async_get_samples_since(
    client: WifiPoolClient, domain: str, io: str, *, after_ms: int
) -> list[dict[str, Any]]:
    """Fetch samples newer than `after_ms`, tolerating the cloud's unit ambiguity.

    The cloud is asked with millisecond `after` first; when that yields
    nothing it is asked again with whole seconds.

    Args:
        client: API client.
        domain: Pool domain.
        io: Channel id.
        after_ms: Lower bound in epoch milliseconds.

    Returns:
        Samples, oldest first.
    """
    after_ms = max(0, int(after_ms))
    samples = await client.async_get_samples(domain, io, after_ms)
    if samples or after_ms == 0:
        return samples
    after_s = after_ms // 1000
    _LOGGER.debug("No samples for %s after=%s ms; retrying with %s s", io, after_ms, after_s)
    return await client.async_get_samples(domain, io, after_s)
