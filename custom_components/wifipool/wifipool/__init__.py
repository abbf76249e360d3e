"""Internal WiFiPool domain package.

This package centralizes cloud-specific behavior so Home Assistant platform
files can stay small and focused.

The package provides:
    - A session-caching async client for the native_mobile API
    - Schema-tolerant tree and sample decoders
    - Domain/device resolution and channel classification
    - A polling reconciler and a switch writability learner
"""

from __future__ import annotations

# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------
from .classifier import (
    KIND_FLOW,
    KIND_PH,
    KIND_REDOX,
    KIND_SWITCH,
    KIND_TEMPERATURE,
    ChannelClassifier,
    ChannelSlot,
    IOMap,
    candidate_channels,
    channel_direction,
    channel_suffix,
)
from .client import DEFAULT_BASE_URL, WifiPoolClient
from .discovery import (
    DiscoveryResult,
    async_auto_discover,
    async_discover_channels,
    async_test_connection,
    device_name,
)
from .exceptions import (
    AuthenticationError,
    ChannelUnavailableError,
    ConfigurationError,
    DeviceNotFoundError,
    DomainResolutionError,
    NoGroupsError,
    ProtocolError,
    SensorWriteRejectedError,
    TelemetryError,
    TransportError,
    WifiPoolError,
)
from .reconciler import (
    CAPABILITY_HEALTH,
    CapabilityUpdate,
    PollingReconciler,
    PollResult,
    ReconcilerState,
)
from .writability import WritabilityLearner

__all__ = [
    "AuthenticationError",
    "CAPABILITY_HEALTH",
    "CapabilityUpdate",
    "ChannelClassifier",
    "ChannelSlot",
    "ChannelUnavailableError",
    "ConfigurationError",
    "DEFAULT_BASE_URL",
    "DeviceNotFoundError",
    "DiscoveryResult",
    "DomainResolutionError",
    "IOMap",
    "KIND_FLOW",
    "KIND_PH",
    "KIND_REDOX",
    "KIND_SWITCH",
    "KIND_TEMPERATURE",
    "NoGroupsError",
    "PollResult",
    "PollingReconciler",
    "ProtocolError",
    "ReconcilerState",
    "SensorWriteRejectedError",
    "TelemetryError",
    "TransportError",
    "WifiPoolClient",
    "WifiPoolError",
    "WritabilityLearner",
    "async_auto_discover",
    "async_discover_channels",
    "async_test_connection",
    "candidate_channels",
    "channel_direction",
    "channel_suffix",
    "device_name",
]
