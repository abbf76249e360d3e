"""Switch entities for WiFiPool.

One switch per relay channel currently known to accept manual writes.

Control goes through the cloud API:
- POST /harmopool/setManualIO {domain, io, value}

A channel that turns out to be a sensor is demoted and its switch removed;
a read-only channel that accepts a write is promoted and gains a switch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, cast

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, LOGGER_NAME
from .coordinator import WifiPoolDataUpdateCoordinator
from .wifipool import channel_suffix

_LOGGER = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class _ChannelRef:
    """Reference to a WiFiPool switch channel."""

    io: str
    name: str


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up WiFiPool switches from a config entry.

    Args:
        hass: Home Assistant instance.
        entry: The config entry.
        async_add_entities: Callback to add entities.
    """
    coordinator: WifiPoolDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]

    added: dict[str, WifiPoolChannelSwitch] = {}

    @callback
    def _sync_channel_switches() -> None:
        writable = set(coordinator.writability.writable_channels())

        new_entities: list[SwitchEntity] = []
        for io in coordinator.writability.writable_channels():
            if io in added:
                continue
            ref = _ChannelRef(io=io, name=f"Channel {channel_suffix(io)}")
            entity = WifiPoolChannelSwitch(coordinator, entry, ref=ref)
            added[io] = entity
            new_entities.append(entity)

        for io in [io for io in added if io not in writable]:
            entity = added.pop(io)
            _LOGGER.debug("Removing switch for read-only channel %s", io)
            ent_reg = er.async_get(hass)
            if entity.entity_id and ent_reg.async_get(entity.entity_id) is not None:
                ent_reg.async_remove(entity.entity_id)
            elif entity.hass is not None:
                hass.async_create_task(entity.async_remove(force_remove=True))

        if new_entities:
            async_add_entities(new_entities)

    _sync_channel_switches()
    remove = coordinator.async_add_listener(_sync_channel_switches)
    entry.async_on_unload(remove)


class WifiPoolChannelSwitch(SwitchEntity):
    """Switch writing a manual on/off value to one channel."""

    _attr_has_entity_name = True
    _attr_should_poll = False
    _attr_icon = "mdi:electric-switch"

    def __init__(
        self,
        coordinator: WifiPoolDataUpdateCoordinator,
        entry: ConfigEntry,
        *,
        ref: _ChannelRef,
    ) -> None:
        """Initialize the switch."""
        super().__init__()
        self._coordinator = coordinator
        self._entry = entry
        self._ref = ref
        self._unsub: Callable[[], None] | None = None

        self._attr_unique_id = (
            f"{coordinator.device_identifier}_switch_{channel_suffix(ref.io)}".lower()
        )
        self._attr_name = ref.name
        self._attr_device_info = coordinator.device_info
        self._attr_extra_state_attributes = {"channel": ref.io}
        self._attr_available = bool(
            getattr(self._coordinator, "last_update_success", True)
        )
        self._attr_is_on = self._read_is_on()

    def _read_is_on(self) -> bool | None:
        data = self._coordinator.data or {}
        states_any: Any = data.get("switch_states")
        if not isinstance(states_any, dict):
            return None
        value: Any = cast(dict[str, Any], states_any).get(self._ref.io)
        return value if isinstance(value, bool) else None

    async def async_turn_on(self, **kwargs: Any) -> None:
        await self._coordinator.async_set_switch(self._ref.io, True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        await self._coordinator.async_set_switch(self._ref.io, False)

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
