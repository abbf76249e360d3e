"""Channel classification.

The cloud exposes no type metadata per channel, so every candidate channel of
a device is queried and its samples are classified by payload shape and value
range:

- a `switch` object (or a populated `device_state_data.power`) marks a switch;
- a `ds18b20` object with a temperature marks the temperature sensor;
- an `analog` value in [0, 14] is pH, in (100, 1500) is redox, anything else
  is flow.

Only the first channel found for pH, redox, flow, and temperature is kept;
every switch is kept.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Final, Mapping, cast

from .client import WifiPoolClient
from .exceptions import WifiPoolError
from .samples import async_get_samples_since
from .util import as_float

_LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

KIND_SWITCH: Final = "switch"
KIND_PH: Final = "ph"
KIND_REDOX: Final = "redox"
KIND_FLOW: Final = "flow"
KIND_TEMPERATURE: Final = "temperature"
KIND_UNKNOWN: Final = "unknown"

# Raw payload shapes, before range heuristics.
SHAPE_SWITCH: Final = "switch"
SHAPE_ANALOG: Final = "analog"
SHAPE_DS18B20: Final = "ds18b20"

PH_MAX: Final = 14.0
REDOX_MIN: Final = 100.0
REDOX_MAX: Final = 1500.0

OUTPUT_CHANNEL_COUNT: Final = 13
INPUT_CHANNEL_COUNT: Final = 8

DISCOVERY_LOOKBACK_MS: Final = 72 * 3600 * 1000

SCALAR_KINDS: Final[tuple[str, ...]] = (KIND_PH, KIND_REDOX, KIND_FLOW, KIND_TEMPERATURE)


# -----------------------------------------------------------------------------
# Data model
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ChannelSlot:
    """A classified channel: channel id plus the sub-key holding its value."""

    io: str
    key: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Serialize for config entry storage."""
        return {"io": self.io, "key": self.key}

    @classmethod
    def from_any(cls, value: Any) -> ChannelSlot | None:
        """Rebuild a slot from stored data; None when it is unusable."""
        if not isinstance(value, Mapping):
            return None
        data = cast(Mapping[str, Any], value)
        io: Any = data.get("io")
        if not isinstance(io, str) or not io:
            return None
        key: Any = data.get("key")
        return cls(io=io, key=str(key) if key is not None else None)


@dataclass(frozen=True)
class ChannelShape:
    """Payload shape detected in a channel's samples.

    Attributes:
        shape: One of the SHAPE_* constants, or None when nothing matched.
        key: Sub-key inside the matched object.
        sample: Raw reading that justified the match.
    """

    shape: str | None
    key: str | None = None
    sample: Any = None


@dataclass
class IOMap:
    """Discovery result consumed by the poller."""

    domain: str
    device_uuid: str
    switches: list[str] = field(default_factory=list)
    ph: ChannelSlot | None = None
    redox: ChannelSlot | None = None
    flow: ChannelSlot | None = None
    temperature: ChannelSlot | None = None

    def slot(self, kind: str) -> ChannelSlot | None:
        """Return the slot for a scalar kind."""
        return cast(ChannelSlot | None, getattr(self, kind, None))

    @property
    def populated_count(self) -> int:
        """Return the number of switches plus filled scalar slots."""
        return len(self.switches) + sum(
            1 for kind in SCALAR_KINDS if self.slot(kind) is not None
        )

    def as_dict(self) -> dict[str, Any]:
        """Serialize for config entry storage; absent slots are omitted."""
        out: dict[str, Any] = {
            "domain": self.domain,
            "device_uuid": self.device_uuid,
            "switches": list(self.switches),
        }
        for kind in SCALAR_KINDS:
            slot = self.slot(kind)
            if slot is not None:
                out[kind] = slot.as_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> IOMap:
        """Rebuild an IOMap from stored data, tolerating missing fields."""
        switches_any: Any = data.get("switches")
        switches = (
            [str(s) for s in cast(list[Any], switches_any) if isinstance(s, str) and s]
            if isinstance(switches_any, list)
            else []
        )
        return cls(
            domain=str(data.get("domain") or ""),
            device_uuid=str(data.get("device_uuid") or ""),
            switches=switches,
            ph=ChannelSlot.from_any(data.get(KIND_PH)),
            redox=ChannelSlot.from_any(data.get(KIND_REDOX)),
            flow=ChannelSlot.from_any(data.get(KIND_FLOW)),
            temperature=ChannelSlot.from_any(data.get(KIND_TEMPERATURE)),
        )


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def candidate_channels(device_uuid: str) -> list[str]:
    """Return every channel id queried during discovery, inputs first."""
    inputs = [f"{device_uuid}.i{n}" for n in range(INPUT_CHANNEL_COUNT)]
    outputs = [f"{device_uuid}.o{n}" for n in range(OUTPUT_CHANNEL_COUNT)]
    return [*inputs, *outputs]


def channel_direction(io: str) -> str | None:
    """Return "i" or "o" from a channel id like `<device>.o3`."""
    _, _, suffix = (io or "").rpartition(".")
    if len(suffix) >= 2 and suffix[0] in ("i", "o") and suffix[1:].isdigit():
        return suffix[0]
    return None


def channel_suffix(io: str) -> str:
    """Return the `o3` part of a channel id."""
    return (io or "").rpartition(".")[2]


def _first_item(obj: dict[str, Any]) -> tuple[str | None, Any]:
    for k, v in obj.items():
        return str(k), v
    return None, None


def _switch_shape(value: Any) -> ChannelShape | None:
    if value is None or value == {} or value == "":
        return None
    if isinstance(value, dict):
        key, first = _first_item(cast(dict[str, Any], value))
        return ChannelShape(SHAPE_SWITCH, key, first)
    return ChannelShape(SHAPE_SWITCH, None, value)


def detect_shape(samples: list[dict[str, Any]]) -> ChannelShape:
    """Find the first sample carrying a known payload shape, newest first.

    Within a sample, switch markers win over ds18b20, which wins over analog.
    """
    for sample in reversed(samples):
        data_any: Any = sample.get("device_sensor_data")
        data = cast(dict[str, Any], data_any) if isinstance(data_any, dict) else {}
        state_any: Any = sample.get("device_state_data")
        state = cast(dict[str, Any], state_any) if isinstance(state_any, dict) else {}

        found = _switch_shape(data.get("switch")) or _switch_shape(state.get("power"))
        if found is not None:
            return found

        ds_any: Any = data.get("ds18b20")
        if isinstance(ds_any, dict) and ds_any:
            ds = cast(dict[str, Any], ds_any)
            if "temperature" in ds:
                return ChannelShape(SHAPE_DS18B20, "temperature", ds.get("temperature"))
            key, nested = _first_item(ds)
            if isinstance(nested, dict) and "temperature" in nested:
                return ChannelShape(
                    SHAPE_DS18B20, key, cast(dict[str, Any], nested).get("temperature")
                )

        analog_any: Any = data.get("analog")
        if isinstance(analog_any, dict) and analog_any:
            key, value = _first_item(cast(dict[str, Any], analog_any))
            return ChannelShape(SHAPE_ANALOG, key, value)

    return ChannelShape(None)


# -----------------------------------------------------------------------------
# Classifier
# -----------------------------------------------------------------------------


class ChannelClassifier:
    """Assign channels to IOMap slots using range heuristics."""

    def __init__(
        self,
        *,
        ph_max: float = PH_MAX,
        redox_min: float = REDOX_MIN,
        redox_max: float = REDOX_MAX,
        lookback_ms: int = DISCOVERY_LOOKBACK_MS,
    ) -> None:
        self.ph_max = ph_max
        self.redox_min = redox_min
        self.redox_max = redox_max
        self.lookback_ms = lookback_ms

    def analog_kinds(self, value: float) -> list[str]:
        """Return the slots an analog value may fill, in priority order.

        Flow is always last: a value whose range slot is already taken falls
        through to it.
        """
        kinds: list[str] = []
        if 0 <= value <= self.ph_max:
            kinds.append(KIND_PH)
        if self.redox_min < value < self.redox_max:
            kinds.append(KIND_REDOX)
        kinds.append(KIND_FLOW)
        return kinds

    def analog_kind(self, value: float) -> str:
        """Map an analog value to pH, redox, or flow."""
        return self.analog_kinds(value)[0]

    def classify(self, samples: list[dict[str, Any]]) -> tuple[str, ChannelShape]:
        """Classify one channel's samples without regard to other channels.

        Returns:
            (kind, shape) where kind is one of the KIND_* constants.
        """
        shape = detect_shape(samples)
        if shape.shape == SHAPE_SWITCH:
            return KIND_SWITCH, shape
        if shape.shape == SHAPE_DS18B20:
            if as_float(shape.sample) is None:
                return KIND_UNKNOWN, shape
            return KIND_TEMPERATURE, shape
        if shape.shape == SHAPE_ANALOG:
            value = as_float(shape.sample)
            if value is None:
                return KIND_UNKNOWN, shape
            return self.analog_kind(value), shape
        return KIND_UNKNOWN, shape

    def apply(self, io_map: IOMap, io: str, samples: list[dict[str, Any]]) -> str | None:
        """Record one queried channel into the map.

        Returns:
            The kind assigned, or None when the channel was not recorded.
        """
        if not samples:
            return None
        kind, shape = self.classify(samples)
        if kind == KIND_SWITCH:
            if io not in io_map.switches:
                io_map.switches.append(io)
            _LOGGER.debug("Switch at %s", io)
            return kind
        if kind not in SCALAR_KINDS:
            return None

        options = [kind]
        value = as_float(shape.sample)
        if shape.shape == SHAPE_ANALOG and value is not None:
            options = self.analog_kinds(value)
        for option in options:
            if io_map.slot(option) is not None:
                continue
            setattr(io_map, option, ChannelSlot(io=io, key=shape.key))
            _LOGGER.info("%s at %s (key=%s sample=%s)", option, io, shape.key, shape.sample)
            return option
        _LOGGER.debug("Ignoring extra %s at %s", kind, io)
        return None

    async def async_discover(
        self,
        client: WifiPoolClient,
        *,
        domain: str,
        device_uuid: str,
        now_ms: int | None = None,
    ) -> IOMap:
        """Query every candidate channel serially and build the IOMap.

        Query failures are logged and skipped.
        """
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        after_ms = max(0, now_ms - self.lookback_ms)

        io_map = IOMap(domain=domain, device_uuid=device_uuid)
        for io in candidate_channels(device_uuid):
            try:
                samples = await async_get_samples_since(
                    client, domain, io, after_ms=after_ms
                )
            except WifiPoolError as err:
                _LOGGER.debug("Query of %s failed: %s", io, err)
                continue
            self.apply(io_map, io, samples)

        _LOGGER.info("Saved io_map entries = %s", io_map.populated_count)
        return io_map
