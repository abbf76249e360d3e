"""The WiFiPool integration.

This integration polls a WiFiPool pool controller through the vendor cloud
API and exposes its sensors and relays as Home Assistant entities.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from .const import (
    ATTR_ENTRY_ID,
    DOMAIN,
    LOGGER_NAME,
    PLATFORMS,
    SERVICE_DISCOVER_CHANNELS,
    SERVICE_RUN_AUTO_SETUP,
    SERVICE_TEST_CONNECTION,
)
from .coordinator import WifiPoolDataUpdateCoordinator, poll_interval_seconds

_LOGGER = logging.getLogger(LOGGER_NAME)

SERVICE_SCHEMA = vol.Schema({vol.Optional(ATTR_ENTRY_ID): cv.string})

_SERVICES: tuple[str, ...] = (
    SERVICE_TEST_CONNECTION,
    SERVICE_DISCOVER_CHANNELS,
    SERVICE_RUN_AUTO_SETUP,
)


def _coordinator_for_call(
    hass: HomeAssistant, call: ServiceCall
) -> WifiPoolDataUpdateCoordinator:
    """Pick the coordinator a service call targets.

    Args:
        hass: Home Assistant instance.
        call: Service call; `entry_id` is optional when exactly one entry is loaded.

    Returns:
        The matching coordinator.

    Raises:
        HomeAssistantError: If no entry, or more than one, matches.
    """
    coordinators: dict[str, WifiPoolDataUpdateCoordinator] = hass.data.get(DOMAIN, {})
    entry_id = str(call.data.get(ATTR_ENTRY_ID) or "").strip()
    if entry_id:
        coordinator = coordinators.get(entry_id)
        if coordinator is None:
            raise HomeAssistantError(f"No loaded WiFiPool entry with id {entry_id}")
        return coordinator
    if len(coordinators) == 1:
        return next(iter(coordinators.values()))
    if not coordinators:
        raise HomeAssistantError("No WiFiPool entry is loaded")
    raise HomeAssistantError("Several WiFiPool entries are loaded; pass entry_id")


def _async_register_services(hass: HomeAssistant) -> None:
    if hass.services.has_service(DOMAIN, SERVICE_TEST_CONNECTION):
        return

    def _make_handler(
        op: Callable[[WifiPoolDataUpdateCoordinator], Awaitable[dict[str, Any]]],
    ) -> Callable[[ServiceCall], Awaitable[ServiceResponse]]:
        async def _handle(call: ServiceCall) -> ServiceResponse:
            coordinator = _coordinator_for_call(hass, call)
            _LOGGER.debug("Service %s for entry_id=%s", call.service, coordinator.entry.entry_id)
            return await op(coordinator)

        return _handle

    handlers: dict[str, Callable[[WifiPoolDataUpdateCoordinator], Awaitable[dict[str, Any]]]] = {
        SERVICE_TEST_CONNECTION: lambda c: c.async_test_connection(),
        SERVICE_DISCOVER_CHANNELS: lambda c: c.async_discover_channels(),
        SERVICE_RUN_AUTO_SETUP: lambda c: c.async_run_auto_setup(),
    }
    for service, op in handlers.items():
        hass.services.async_register(
            DOMAIN,
            service,
            _make_handler(op),
            schema=SERVICE_SCHEMA,
            supports_response=SupportsResponse.ONLY,
        )


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload when the poll interval option changes.

    Data-only updates (learned writability) do not need a reload.
    """
    coordinator: WifiPoolDataUpdateCoordinator | None = hass.data.get(DOMAIN, {}).get(
        entry.entry_id
    )
    if coordinator is None:
        return
    if coordinator.poll_interval_seconds != poll_interval_seconds(entry.options):
        _LOGGER.debug("Poll interval changed; reloading entry_id=%s", entry.entry_id)
        await hass.config_entries.async_reload(entry.entry_id)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up WiFiPool from a config entry.

    Args:
        hass: Home Assistant instance.
        entry: The config entry.

    Returns:
        True if setup succeeds.
    """
    coordinator = WifiPoolDataUpdateCoordinator(hass, entry=entry)
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    entry.async_on_unload(entry.add_update_listener(_async_update_listener))
    _async_register_services(hass)

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry.

    Args:
        hass: Home Assistant instance.
        entry: The config entry.

    Returns:
        True if the entry was unloaded.
    """
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        coordinators: dict[str, Any] = hass.data.get(DOMAIN, {})
        coordinators.pop(entry.entry_id, None)
        if not coordinators:
            for service in _SERVICES:
                hass.services.async_remove(DOMAIN, service)
    return unload_ok
