"""Internal API exception types.

These exceptions are raised by the standalone cloud client and the discovery
and polling helpers. The Home Assistant integration should translate these
into HA-specific exception types.

This module intentionally avoids Home Assistant imports.
"""

from __future__ import annotations


class WifiPoolError(Exception):
    """Base exception for WiFiPool cloud failures."""


class ConfigurationError(WifiPoolError):
    """Required credentials or settings are missing."""


class AuthenticationError(WifiPoolError):
    """Login rejected or session expired.

    Attributes:
        status: HTTP status returned by the cloud, when known.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ProtocolError(WifiPoolError):
    """The cloud answered, but the response shape was unusable.

    Attributes:
        body_excerpt: Leading part of the raw response body, for logs.
    """

    def __init__(self, message: str, *, body_excerpt: str = "") -> None:
        super().__init__(message)
        self.body_excerpt = body_excerpt


class TelemetryError(WifiPoolError):
    """Non-2xx response from a telemetry endpoint.

    Attributes:
        status: HTTP status code.
        body: Raw response text.
    """

    def __init__(self, message: str, *, status: int, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class SensorWriteRejectedError(TelemetryError):
    """The cloud refused a manual write because the channel is a sensor."""


class ChannelUnavailableError(WifiPoolError):
    """A queried channel does not exist on the controller (HTTP 404)."""


class TransportError(WifiPoolError):
    """Network, timeout, or JSON decoding error talking to the cloud."""


class NoGroupsError(WifiPoolError):
    """The account has no accessible groups."""


class DomainResolutionError(WifiPoolError):
    """No candidate identifier was accepted as the pool domain."""


class DeviceNotFoundError(WifiPoolError):
    """The resolved domain has no device entry."""
