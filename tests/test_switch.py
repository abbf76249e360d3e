"""Tests for WiFiPool switch platform."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, cast
from unittest.mock import AsyncMock

import pytest
from homeassistant.exceptions import HomeAssistantError
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.wifipool.const import DOMAIN
from custom_components.wifipool.coordinator import build_device_info
from custom_components.wifipool.wifipool import IOMap, WritabilityLearner

DEVICE = "00000002-0000-4000-8000-000000000002"
DOMAIN_ID = "00000001-0000-4000-8000-000000000001"
O3 = f"{DEVICE}.o3"
I5 = f"{DEVICE}.i5"


@dataclass
class _CoordinatorStub:
    io_map: IOMap
    data: dict[str, Any]
    last_update_success: bool = True
    device_identifier: str = DEVICE

    def __post_init__(self) -> None:
        self._listeners: list[Callable[[], None]] = []
        self.writability = WritabilityLearner(self.io_map.switches)
        self.async_set_switch = AsyncMock(return_value=None)
        self.device_info = build_device_info(
            device_identifier=self.device_identifier, name="WiFiPool 2xSwitch"
        )

    def async_add_listener(self, cb: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(cb)

        def _remove() -> None:
            if cb in self._listeners:
                self._listeners.remove(cb)

        return _remove

    def fire_update(self) -> None:
        for cb in list(self._listeners):
            cb()


async def _setup(hass, coordinator: _CoordinatorStub) -> list[Any]:
    entry = MockConfigEntry(domain=DOMAIN, data={}, unique_id=DEVICE, title="WiFiPool")
    entry.add_to_hass(hass)
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coordinator

    added: list[Any] = []

    def _add_entities(new_entities, update_before_add: bool = False):
        added.extend(list(new_entities))

    from custom_components.wifipool import switch

    await switch.async_setup_entry(hass, cast(Any, entry), _add_entities)
    return added


async def test_switch_only_for_writable_channels(hass, enable_custom_integrations):
    coordinator = _CoordinatorStub(
        io_map=IOMap(domain=DOMAIN_ID, device_uuid=DEVICE, switches=[O3, I5]),
        data={"switch_states": {O3: True, I5: False}},
    )

    added = await _setup(hass, coordinator)

    assert len(added) == 1
    sw = added[0]
    assert sw._attr_name == "Channel o3"
    assert sw._attr_unique_id == f"{DEVICE}_switch_o3"
    assert sw._attr_is_on is True

    # Listener re-runs are idempotent.
    coordinator.fire_update()
    assert len(added) == 1


async def test_switch_turn_on_off_delegates_to_coordinator(
    hass, enable_custom_integrations
):
    coordinator = _CoordinatorStub(
        io_map=IOMap(domain=DOMAIN_ID, device_uuid=DEVICE, switches=[O3]),
        data={"switch_states": {O3: False}},
    )
    added = await _setup(hass, coordinator)
    sw = added[0]

    await sw.async_turn_on()
    await sw.async_turn_off()

    assert coordinator.async_set_switch.await_args_list[0].args == (O3, True)
    assert coordinator.async_set_switch.await_args_list[1].args == (O3, False)


async def test_switch_errors_propagate(hass, enable_custom_integrations):
    coordinator = _CoordinatorStub(
        io_map=IOMap(domain=DOMAIN_ID, device_uuid=DEVICE, switches=[O3]),
        data={},
    )
    coordinator.async_set_switch = AsyncMock(side_effect=HomeAssistantError("read-only"))
    added = await _setup(hass, coordinator)

    with pytest.raises(HomeAssistantError):
        await added[0].async_turn_on()


async def test_switch_set_follows_writability(hass, enable_custom_integrations):
    coordinator = _CoordinatorStub(
        io_map=IOMap(domain=DOMAIN_ID, device_uuid=DEVICE, switches=[O3, I5]),
        data={"switch_states": {}},
    )
    added = await _setup(hass, coordinator)
    assert [e._attr_name for e in added] == ["Channel o3"]

    # Input accepted a write: gains a switch.
    coordinator.writability.record_write_success(I5)
    coordinator.fire_update()
    assert [e._attr_name for e in added] == ["Channel o3", "Channel i5"]

    # Output turned out to be a sensor: dropped, and re-added on promotion.
    coordinator.writability.record_sensor_rejection(O3)
    coordinator.fire_update()
    coordinator.writability.record_write_success(O3)
    coordinator.fire_update()
    assert [e._attr_name for e in added] == ["Channel o3", "Channel i5", "Channel o3"]


async def test_switch_updates_from_coordinator(hass, enable_custom_integrations):
    coordinator = _CoordinatorStub(
        io_map=IOMap(domain=DOMAIN_ID, device_uuid=DEVICE, switches=[O3]),
        data={"switch_states": {O3: False}},
    )
    added = await _setup(hass, coordinator)
    sw = added[0]
    sw.async_write_ha_state = lambda *args, **kwargs: None
    await sw.async_added_to_hass()

    coordinator.data = {"switch_states": {O3: True}}
    coordinator.last_update_success = False
    coordinator.fire_update()

    assert sw._attr_is_on is True
    assert sw._attr_available is False

    await sw.async_will_remove_from_hass()
