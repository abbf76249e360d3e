"""Constants for the WiFiPool integration.

This module centralizes configuration keys, defaults, and platform registration.
"""

from __future__ import annotations

from typing import Final

from homeassistant.const import Platform

DOMAIN: Final = "wifipool"

# Use a stable logger name so users can configure logging via
# `logger: default: ... logs: { custom_components.wifipool: debug }`.
LOGGER_NAME: Final = f"custom_components.{DOMAIN}"

CONF_EMAIL: Final = "email"
CONF_PASSWORD: Final = "password"
CONF_POLL_INTERVAL: Final = "poll_interval"

# Persisted discovery result.
CONF_DOMAIN_ID: Final = "domain"
CONF_DEVICE_UUID: Final = "device_uuid"
CONF_IO_MAP: Final = "io_map"
CONF_WRITABLE: Final = "writable"

DEFAULT_POLL_INTERVAL_SECONDS: Final[int] = 60
MIN_POLL_INTERVAL_SECONDS: Final[int] = 15
MAX_POLL_INTERVAL_SECONDS: Final[int] = 600
DEFAULT_TIMEOUT_SECONDS: Final[int] = 10

MANUFACTURER: Final = "WiFiPool"

EVENT_WIFIPOOL: Final = f"{DOMAIN}_event"

SERVICE_TEST_CONNECTION: Final = "test_connection"
SERVICE_DISCOVER_CHANNELS: Final = "discover_channels"
SERVICE_RUN_AUTO_SETUP: Final = "run_auto_setup"
ATTR_ENTRY_ID: Final = "entry_id"

PLATFORMS: Final[list[Platform]] = [
    Platform.SENSOR,
    Platform.BINARY_SENSOR,
    Platform.SWITCH,
]
