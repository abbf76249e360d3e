"""Binary sensors for WiFiPool.

This platform exposes the flow state, the health alarm, and the last decoded
state of every switch channel (writable or not).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, cast

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN
from .coordinator import WifiPoolDataUpdateCoordinator
from .wifipool import CAPABILITY_HEALTH, KIND_FLOW, channel_suffix


@dataclass(frozen=True)
class _BinaryRef:
    """Reference to a coordinator boolean field."""

    key: str
    name: str
    icon: str | None
    device_class: BinarySensorDeviceClass | None
    entity_category: EntityCategory | None
    value_fn: Callable[[dict[str, Any]], bool | None]


def _published(capability: str) -> Callable[[dict[str, Any]], bool | None]:
    """Return a function that reads a published boolean capability."""

    def _get(data: dict[str, Any]) -> bool | None:
        values_any: Any = data.get("values")
        if not isinstance(values_any, dict):
            return None
        value: Any = cast(dict[str, Any], values_any).get(capability)
        return value if isinstance(value, bool) else None

    return _get


def _health_alarm(data: dict[str, Any]) -> bool | None:
    value: Any = data.get(CAPABILITY_HEALTH)
    return value if isinstance(value, bool) else None


def _switch_state(io: str) -> Callable[[dict[str, Any]], bool | None]:
    def _get(data: dict[str, Any]) -> bool | None:
        states_any: Any = data.get("switch_states")
        if not isinstance(states_any, dict):
            return None
        value: Any = cast(dict[str, Any], states_any).get(io)
        return value if isinstance(value, bool) else None

    return _get


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up WiFiPool binary sensors from a config entry.

    Args:
        hass: Home Assistant instance.
        entry: The config entry.
        async_add_entities: Callback to add entities.
    """
    coordinator: WifiPoolDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]
    io_map = coordinator.io_map

    refs: list[_BinaryRef] = []
    if io_map.flow is not None or io_map.switches:
        refs.append(
            _BinaryRef(
                key=KIND_FLOW,
                name="Flow",
                icon="mdi:waves-arrow-right",
                device_class=BinarySensorDeviceClass.RUNNING,
                entity_category=None,
                value_fn=_published(KIND_FLOW),
            )
        )
    refs.append(
        _BinaryRef(
            key="health",
            name="Health alarm",
            icon=None,
            device_class=BinarySensorDeviceClass.PROBLEM,
            entity_category=EntityCategory.DIAGNOSTIC,
            value_fn=_health_alarm,
        )
    )
    for io in io_map.switches:
        refs.append(
            _BinaryRef(
                key=f"channel_{channel_suffix(io)}",
                name=f"Channel {channel_suffix(io)}",
                icon="mdi:electric-switch",
                device_class=None,
                entity_category=None,
                value_fn=_switch_state(io),
            )
        )

    async_add_entities(
        [WifiPoolBinarySensor(coordinator, entry, ref=ref) for ref in refs]
    )


class WifiPoolBinarySensor(BinarySensorEntity):
    """Binary sensor backed by coordinator data."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(
        self,
        coordinator: WifiPoolDataUpdateCoordinator,
        entry: ConfigEntry,
        *,
        ref: _BinaryRef,
    ) -> None:
        super().__init__()
        self._coordinator = coordinator
        self._entry = entry
        self._ref = ref
        self._unsub: Callable[[], None] | None = None

        self._attr_unique_id = f"{coordinator.device_identifier}_{ref.key}".lower()
        self._attr_name = ref.name
        self._attr_icon = ref.icon
        self._attr_device_class = ref.device_class
        self._attr_entity_category = ref.entity_category
        self._attr_device_info = coordinator.device_info
        self._attr_available = bool(
            getattr(self._coordinator, "last_update_success", True)
        )
        self._attr_is_on = self._read_is_on()

    def _read_is_on(self) -> bool | None:
        return self._ref.value_fn(self._coordinator.data or {})

    def _handle_coordinator_update(self) -> None:
        self._attr_available = bool(
            getattr(self._coordinator, "last_update_success", True)
        )
        self._attr_is_on = self._read_is_on()
        self.async_write_ha_state()

    async def async_added_to_hass(self) -> None:
        self._unsub = self._coordinator.async_add_listener(
            self._handle_coordinator_update
        )
        self._handle_coordinator_update()

    async def async_will_remove_from_hass(self) -> None:
        if self._unsub is not None:
            self._unsub()
            self._unsub = None
