"""Polling reconciler.

One reconciler instance polls one device. Each cycle re-reads the classified
channels, decodes typed values, drops stale readings, and reports a value
only when it differs from the last one reported. Failures are isolated per
sensor; any failure flips the health alarm for the cycle.

This module intentionally avoids Home Assistant imports.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Final

from .classifier import (
    KIND_FLOW,
    KIND_PH,
    KIND_REDOX,
    KIND_TEMPERATURE,
    IOMap,
    channel_direction,
)
from .client import WifiPoolClient
from .exceptions import WifiPoolError
from .samples import (
    FLOW_ANALOG_THRESHOLD,
    analog_reading,
    decode_switch_bool,
    latest_analog,
    newest_time_ms,
    sample_time_ms,
    temperature_reading,
)

_LOGGER = logging.getLogger(__name__)

STALE_MS: Final = 5 * 60 * 1000

CAPABILITY_HEALTH: Final = "alarm_health"

TRIGGER_BY_CAPABILITY: Final[dict[str, str]] = {
    KIND_PH: "ph_updated",
    KIND_REDOX: "redox_updated",
    KIND_TEMPERATURE: "temp_updated",
    KIND_FLOW: "flow_updated",
    CAPABILITY_HEALTH: "health_changed",
}


@dataclass(frozen=True)
class CapabilityUpdate:
    """A value that changed during a cycle."""

    capability: str
    value: Any

    @property
    def trigger(self) -> str | None:
        return TRIGGER_BY_CAPABILITY.get(self.capability)


@dataclass
class ReconcilerState:
    """Mutable per-device poll state.

    Attributes:
        watermarks: Newest sample time seen per channel, epoch ms.
        published: Last reported value per capability.
        switch_states: Last decoded on/off per switch channel.
    """

    watermarks: dict[str, int] = field(default_factory=dict)
    published: dict[str, Any] = field(default_factory=dict)
    switch_states: dict[str, bool | None] = field(default_factory=dict)

    def reset(self) -> None:
        self.watermarks.clear()
        self.published.clear()
        self.switch_states.clear()


@dataclass
class PollResult:
    """Outcome of one cycle."""

    healthy: bool
    updates: list[CapabilityUpdate]
    values: dict[str, Any]
    switch_states: dict[str, bool | None]
    errors: list[str] = field(default_factory=list)


def _latest_scalar(
    samples: list[dict[str, Any]], reader: Callable[[dict[str, Any]], float | None]
) -> tuple[float | None, int | None]:
    for sample in reversed(samples):
        value = reader(sample)
        if value is not None:
            return value, sample_time_ms(sample)
    return None, None


class PollingReconciler:
    """Poll one device's classified channels and report changes."""

    def __init__(
        self,
        client: WifiPoolClient,
        io_map: IOMap,
        *,
        state: ReconcilerState | None = None,
        stale_ms: int = STALE_MS,
        flow_threshold: float = FLOW_ANALOG_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.io_map = io_map
        self.state = state or ReconcilerState()
        self.stale_ms = stale_ms
        self.flow_threshold = flow_threshold
        self._clock = clock

    def reset(self) -> None:
        self.state.reset()

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def async_poll(self, *, now_ms: int | None = None) -> PollResult:
        """Run one poll cycle.

        Never raises for cloud errors; they are reported through
        `PollResult.healthy` and `PollResult.errors`.
        """
        if now_ms is None:
            now_ms = int(self._clock() * 1000)
        updates: list[CapabilityUpdate] = []
        errors: list[str] = []

        domain = self.io_map.domain
        if not domain or not self.io_map.device_uuid:
            _LOGGER.warning("Missing domain or io_map; skipping poll")
            errors.append("missing domain or io_map")
        else:
            for kind in (KIND_PH, KIND_REDOX, KIND_TEMPERATURE):
                try:
                    await self._async_poll_scalar(kind, now_ms=now_ms, updates=updates)
                except WifiPoolError as err:
                    _LOGGER.warning("%s poll error: %s", kind, err)
                    errors.append(f"{kind}: {err}")

            await self._async_poll_switches(errors=errors)

            try:
                await self._async_poll_flow(updates=updates)
            except WifiPoolError as err:
                _LOGGER.warning("flow poll error: %s", err)
                errors.append(f"{KIND_FLOW}: {err}")

        healthy = not errors
        self._publish(CAPABILITY_HEALTH, not healthy, updates)

        return PollResult(
            healthy=healthy,
            updates=updates,
            values=dict(self.state.published),
            switch_states=dict(self.state.switch_states),
            errors=errors,
        )

    def _publish(self, capability: str, value: Any, updates: list[CapabilityUpdate]) -> bool:
        if capability in self.state.published and self.state.published[capability] == value:
            return False
        self.state.published[capability] = value
        updates.append(CapabilityUpdate(capability, value))
        return True

    # -------------------------------------------------------------------------
    # Scalars
    # -------------------------------------------------------------------------

    def _incremental_after(self, io: str) -> int:
        last_ms = self.state.watermarks.get(io, 0)
        return max(0, last_ms // 1000 - 1)

    async def _async_fetch_incremental(self, io: str) -> list[dict[str, Any]]:
        samples = await self.client.async_get_samples(
            self.io_map.domain, io, self._incremental_after(io)
        )
        newest = newest_time_ms(samples)
        if newest is not None:
            self.state.watermarks[io] = max(self.state.watermarks.get(io, 0), newest)
        return samples

    async def _async_poll_scalar(
        self, kind: str, *, now_ms: int, updates: list[CapabilityUpdate]
    ) -> None:
        slot = self.io_map.slot(kind)
        if slot is None:
            return

        samples = await self._async_fetch_incremental(slot.io)
        if kind == KIND_TEMPERATURE:
            value, ts = _latest_scalar(samples, temperature_reading)
        else:
            value, ts = _latest_scalar(
                samples, lambda s: analog_reading(s, key=slot.key)
            )

        if value is None or ts is None:
            _LOGGER.debug("%s: no reading in %s sample(s)", kind, len(samples))
            return
        if now_ms - ts > self.stale_ms:
            _LOGGER.debug("%s: reading %s is stale (%s ms old)", kind, value, now_ms - ts)
            return
        if self._publish(kind, value, updates):
            _LOGGER.info("%s updated: %s", kind, value)

    # -------------------------------------------------------------------------
    # Switches and flow
    # -------------------------------------------------------------------------

    async def _async_poll_switches(self, *, errors: list[str]) -> None:
        for io in self.io_map.switches:
            try:
                samples = await self.client.async_get_samples(self.io_map.domain, io, 0)
            except WifiPoolError as err:
                _LOGGER.warning("switch %s poll error: %s", io, err)
                errors.append(f"{io}: {err}")
                continue
            if not samples:
                _LOGGER.debug("switch %s: no samples", io)
                continue
            value, via = decode_switch_bool(samples[-1], threshold=self.flow_threshold)
            _LOGGER.debug("switch %s via=%s value=%s", io, via, value)
            self.state.switch_states[io] = value

    async def _async_poll_flow(self, *, updates: list[CapabilityUpdate]) -> None:
        outputs = [io for io in self.io_map.switches if channel_direction(io) == "o"]
        inputs = [io for io in self.io_map.switches if channel_direction(io) == "i"]

        for label, channels in (("output", outputs), ("input", inputs)):
            for io in channels:
                value = self.state.switch_states.get(io)
                if value is not None:
                    self._publish_flow(value, f"{label} {io}", updates)
                    return

        slot = self.io_map.flow
        if slot is not None:
            samples = await self.client.async_get_samples(self.io_map.domain, slot.io, 0)
            analog = latest_analog(samples, key=slot.key)
            if analog is not None:
                self._publish_flow(
                    abs(analog) >= self.flow_threshold, f"analog {slot.io}", updates
                )
                return

        _LOGGER.info("Flow: no conclusive evidence this round")

    def _publish_flow(self, value: bool, source: str, updates: list[CapabilityUpdate]) -> None:
        if self._publish(KIND_FLOW, value, updates):
            _LOGGER.info("Flow updated: %s (%s)", value, source)
        else:
            _LOGGER.debug("Flow unchanged: %s (%s)", value, source)
