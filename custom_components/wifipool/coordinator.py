"""Coordinator for polling WiFiPool channels.

Strategy:
- The discovery result persisted in the config entry says which channels to
  read.
- Each refresh runs one reconciler cycle; changed values are pushed to the
  event bus and entities read the shared snapshot.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ConfigEntryAuthFailed, HomeAssistantError
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import (
    DataUpdateCoordinator,
    UpdateFailed,
)

from .const import (
    CONF_DEVICE_UUID,
    CONF_DOMAIN_ID,
    CONF_EMAIL,
    CONF_IO_MAP,
    CONF_PASSWORD,
    CONF_POLL_INTERVAL,
    CONF_WRITABLE,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    DOMAIN,
    EVENT_WIFIPOOL,
    LOGGER_NAME,
    MANUFACTURER,
    MAX_POLL_INTERVAL_SECONDS,
    MIN_POLL_INTERVAL_SECONDS,
)
from .wifipool import (
    AuthenticationError,
    ConfigurationError,
    IOMap,
    PollingReconciler,
    SensorWriteRejectedError,
    WifiPoolClient,
    WifiPoolError,
    WritabilityLearner,
    async_auto_discover,
    async_discover_channels,
    async_test_connection,
    device_name,
)
from .wifipool.util import clamp_int

_LOGGER = logging.getLogger(LOGGER_NAME)


def poll_interval_seconds(options: Mapping[str, Any]) -> int:
    """Return the configured poll interval clamped to the supported range.

    Args:
        options: Config entry options.

    Returns:
        Interval in seconds.
    """
    return clamp_int(
        options.get(CONF_POLL_INTERVAL),
        minimum=MIN_POLL_INTERVAL_SECONDS,
        maximum=MAX_POLL_INTERVAL_SECONDS,
        default=DEFAULT_POLL_INTERVAL_SECONDS,
    )


def io_map_from_entry(data: Mapping[str, Any]) -> IOMap:
    """Rebuild the persisted IOMap, falling back to the top-level ids."""
    raw: Any = data.get(CONF_IO_MAP)
    io_map = IOMap.from_dict(raw if isinstance(raw, Mapping) else {})
    if not io_map.domain:
        io_map.domain = str(data.get(CONF_DOMAIN_ID) or "")
    if not io_map.device_uuid:
        io_map.device_uuid = str(data.get(CONF_DEVICE_UUID) or "")
    return io_map


def build_device_info(*, device_identifier: str, name: str) -> DeviceInfo:
    """Build DeviceInfo for the pool controller.

    Args:
        device_identifier: Stable identifier for the HA device registry.
        name: Display name.

    Returns:
        DeviceInfo instance.
    """
    return DeviceInfo(
        identifiers={(DOMAIN, device_identifier)},
        name=name,
        manufacturer=MANUFACTURER,
        model="Pool controller",
    )


class WifiPoolDataUpdateCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Runs reconciler cycles and shares the latest snapshot."""

    def __init__(self, hass: HomeAssistant, *, entry: ConfigEntry) -> None:
        """Initialize the coordinator.

        Args:
            hass: Home Assistant instance.
            entry: Config entry with credentials and the discovery result.
        """
        self.hass = hass
        self.entry = entry
        self.io_map = io_map_from_entry(entry.data)
        self.poll_interval_seconds = poll_interval_seconds(entry.options)

        self.client = WifiPoolClient(
            email=str(entry.data.get(CONF_EMAIL, "")),
            password=str(entry.data.get(CONF_PASSWORD, "")),
            timeout_seconds=DEFAULT_TIMEOUT_SECONDS,
            session=async_get_clientsession(hass),
        )
        writable_any: Any = entry.data.get(CONF_WRITABLE)
        self._bind_io_map(
            self.io_map,
            overrides=writable_any if isinstance(writable_any, Mapping) else None,
        )

        super().__init__(
            hass,
            _LOGGER,
            name=f"WiFiPool ({self.io_map.device_uuid or entry.entry_id})",
            update_interval=timedelta(seconds=self.poll_interval_seconds),
        )

    def _bind_io_map(
        self, io_map: IOMap, *, overrides: Mapping[str, Any] | None
    ) -> None:
        self.io_map = io_map
        reconciler: PollingReconciler | None = getattr(self, "reconciler", None)
        if reconciler is None:
            self.reconciler = PollingReconciler(self.client, io_map)
        else:
            # Watermarks and published values belong to the previous map.
            reconciler.io_map = io_map
            reconciler.reset()
        self.writability = WritabilityLearner(io_map.switches, overrides=overrides)
        self.writability.async_add_listener(self._handle_writability_change)

    @property
    def has_io_map(self) -> bool:
        return bool(self.io_map.domain and self.io_map.device_uuid)

    @property
    def device_identifier(self) -> str:
        """Return a stable identifier for this controller.

        Prefer the device UUID; fall back to the config entry id.
        """
        if self.io_map.device_uuid:
            return self.io_map.device_uuid
        return f"entry:{self.entry.entry_id}"

    @property
    def device_info(self) -> DeviceInfo:
        return build_device_info(
            device_identifier=self.device_identifier,
            name=str(self.entry.title or "").strip() or device_name(self.io_map),
        )

    async def _async_update_data(self) -> dict[str, Any]:
        try:
            await self.client.async_login()
        except (AuthenticationError, ConfigurationError) as err:
            raise ConfigEntryAuthFailed(str(err)) from err
        except WifiPoolError as err:
            # The cycle below records the failure per sensor.
            _LOGGER.debug("Login before poll failed: %s", err)

        if not self.has_io_map and self.data is None:
            await self._async_discover_missing_io_map()

        result = await self.reconciler.async_poll()

        for update in result.updates:
            if update.trigger is None:
                continue
            self.hass.bus.async_fire(
                EVENT_WIFIPOOL,
                {
                    "entry_id": self.entry.entry_id,
                    "device_uuid": self.io_map.device_uuid,
                    "type": update.trigger,
                    "value": update.value,
                },
            )

        return {
            "values": result.values,
            "alarm_health": not result.healthy,
            "switch_states": result.switch_states,
            "writable": self.writability.writable_channels(),
            "errors": result.errors,
        }

    async def _async_discover_missing_io_map(self) -> None:
        """Run discovery for an entry stored without an IOMap.

        Raises:
            ConfigEntryAuthFailed: Credentials rejected.
            UpdateFailed: Any other discovery failure.
        """
        _LOGGER.info("No stored io_map for entry_id=%s; discovering", self.entry.entry_id)
        try:
            result = await async_auto_discover(self.client)
        except (AuthenticationError, ConfigurationError) as err:
            raise ConfigEntryAuthFailed(str(err)) from err
        except WifiPoolError as err:
            raise UpdateFailed(f"Discovery failed: {err}") from err

        self._bind_io_map(result.io_map, overrides=None)
        self._persist_io_map()

    def _persist_io_map(self) -> None:
        merged: dict[str, Any] = dict(self.entry.data)
        merged.update(
            {
                CONF_DOMAIN_ID: self.io_map.domain,
                CONF_DEVICE_UUID: self.io_map.device_uuid,
                CONF_IO_MAP: self.io_map.as_dict(),
                CONF_WRITABLE: self.writability.overrides,
            }
        )
        self.hass.config_entries.async_update_entry(self.entry, data=merged)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    @callback
    def _handle_writability_change(self) -> None:
        merged: dict[str, Any] = dict(self.entry.data)
        merged[CONF_WRITABLE] = self.writability.overrides
        self.hass.config_entries.async_update_entry(self.entry, data=merged)
        if self.data is not None:
            self.data["writable"] = self.writability.writable_channels()
        self.async_update_listeners()

    async def async_set_switch(self, io: str, value: bool) -> None:
        """Write a manual value to a switch channel and refresh.

        Raises:
            HomeAssistantError: If the cloud rejects the write.
        """
        if not self.writability.is_writable(io):
            raise HomeAssistantError(f"Channel {io} is read-only")
        try:
            await self.client.async_set_manual_value(self.io_map.domain, io, value)
        except SensorWriteRejectedError as err:
            self.writability.record_sensor_rejection(io)
            raise HomeAssistantError(f"Channel {io} is a sensor and is read-only") from err
        except WifiPoolError as err:
            raise HomeAssistantError(f"Error setting {io}: {err}") from err

        self.writability.record_write_success(io)
        await self.async_request_refresh()

    # -------------------------------------------------------------------------
    # Exposed operations
    # -------------------------------------------------------------------------

    async def async_test_connection(self) -> dict[str, Any]:
        try:
            return await async_test_connection(self.client)
        except WifiPoolError as err:
            raise HomeAssistantError(str(err)) from err

    async def async_discover_channels(self) -> dict[str, Any]:
        try:
            return await async_discover_channels(
                self.client, domain=self.io_map.domain or None
            )
        except WifiPoolError as err:
            raise HomeAssistantError(str(err)) from err

    async def async_run_auto_setup(self) -> dict[str, Any]:
        """Rediscover, persist the new IOMap, and reload the entry.

        Learned writability is reset because channel assignments may change.
        """
        try:
            result = await async_auto_discover(self.client)
        except WifiPoolError as err:
            raise HomeAssistantError(str(err)) from err

        self._bind_io_map(result.io_map, overrides=None)
        self._persist_io_map()
        self.hass.config_entries.async_schedule_reload(self.entry.entry_id)
        return result.io_map.as_dict()
