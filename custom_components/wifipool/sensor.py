"""Sensors for WiFiPool.

One sensor per classified scalar channel: pH, redox, and water temperature.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, cast

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfElectricPotential, UnitOfTemperature
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.typing import StateType

from .const import DOMAIN
from .coordinator import WifiPoolDataUpdateCoordinator
from .wifipool import KIND_PH, KIND_REDOX, KIND_TEMPERATURE


@dataclass(frozen=True)
class _ScalarRef:
    """Reference to a published scalar capability."""

    kind: str
    name: str
    unit: str | None
    device_class: SensorDeviceClass | None
    icon: str | None
    precision: int


_SCALARS: tuple[_ScalarRef, ...] = (
    _ScalarRef(
        kind=KIND_PH,
        name="pH",
        unit=None,
        device_class=SensorDeviceClass.PH,
        icon="mdi:ph",
        precision=2,
    ),
    _ScalarRef(
        kind=KIND_REDOX,
        name="Redox",
        unit=UnitOfElectricPotential.MILLIVOLT,
        device_class=SensorDeviceClass.VOLTAGE,
        icon="mdi:flash-triangle-outline",
        precision=0,
    ),
    _ScalarRef(
        kind=KIND_TEMPERATURE,
        name="Temperature",
        unit=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        icon=None,
        precision=1,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up WiFiPool sensors from a config entry.

    Args:
        hass: Home Assistant instance.
        entry: The config entry.
        async_add_entities: Callback to add entities.
    """
    coordinator: WifiPoolDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]

    entities: list[SensorEntity] = [
        WifiPoolScalarSensor(coordinator, entry, ref=ref)
        for ref in _SCALARS
        if coordinator.io_map.slot(ref.kind) is not None
    ]
    if entities:
        async_add_entities(entities)


class WifiPoolScalarSensor(SensorEntity):
    """Sensor exposing the last published value of one capability."""

    _attr_has_entity_name = True
    _attr_should_poll = False
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(
        self,
        coordinator: WifiPoolDataUpdateCoordinator,
        entry: ConfigEntry,
        *,
        ref: _ScalarRef,
    ) -> None:
        super().__init__()
        self._coordinator = coordinator
        self._entry = entry
        self._ref = ref
        self._unsub: Callable[[], None] | None = None

        slot = coordinator.io_map.slot(ref.kind)
        self._attr_unique_id = f"{coordinator.device_identifier}_{ref.kind}".lower()
        self._attr_name = ref.name
        self._attr_native_unit_of_measurement = ref.unit
        self._attr_device_class = ref.device_class
        self._attr_icon = ref.icon
        self._attr_suggested_display_precision = ref.precision
        self._attr_device_info = coordinator.device_info
        self._attr_extra_state_attributes = {"channel": slot.io if slot else None}
        self._attr_available = bool(
            getattr(self._coordinator, "last_update_success", True)
        )
        self._attr_native_value = self._read_native_value()

    def _read_native_value(self) -> StateType:
        data = self._coordinator.data or {}
        values_any: Any = data.get("values")
        if not isinstance(values_any, dict):
            return None
        value: Any = cast(dict[str, Any], values_any).get(self._ref.kind)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return cast(StateType, value)

    def _handle_coordinator_update(self) -> None:
        self._attr_available = bool(
            getattr(self._coordinator, "last_update_success", True)
        )
        self._attr_native_value = self._read_native_value()
        self.async_write_ha_state()

    async def async_added_to_hass(self) -> None:
        """Register coordinator update listener."""
        self._unsub = self._coordinator.async_add_listener(
            self._handle_coordinator_update
        )
        self._handle_coordinator_update()

    async def async_will_remove_from_hass(self) -> None:
        """Remove coordinator listener."""
        if self._unsub is not None:
            self._unsub()
            self._unsub = None
