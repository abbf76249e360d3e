"""Discovery pipelines behind the exposed setup operations.

This module does network I/O through `WifiPoolClient` but holds no state; the
Home Assistant side decides what to persist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .classifier import ChannelClassifier, IOMap
from .client import WifiPoolClient
from .resolver import async_resolve_domain, first_device_uuid, io_ids

_LOGGER = logging.getLogger(__name__)

DEVICE_NAME_PREFIX = "WiFiPool"


def device_name(io_map: IOMap) -> str:
    """Build a display name listing what was found, e.g. `WiFiPool Temp pH 2xSwitch`."""
    parts = [DEVICE_NAME_PREFIX]
    if io_map.temperature is not None:
        parts.append("Temp")
    if io_map.ph is not None:
        parts.append("pH")
    if io_map.redox is not None:
        parts.append("ORP")
    if io_map.switches:
        parts.append(f"{len(io_map.switches)}xSwitch")
    return " ".join(parts)


@dataclass(frozen=True)
class DiscoveryResult:
    """Everything needed to create or refresh a configured device."""

    io_map: IOMap
    name: str
    channels: list[str]


async def async_test_connection(client: WifiPoolClient) -> dict[str, Any]:
    """Log in afresh and report who the cloud thinks we are.

    Returns:
        `{"ok": True, "identity": <email or None>}`.
    """
    await client.async_login(force=True)
    return {"ok": True, "identity": client.auth.identity}


async def async_discover_channels(
    client: WifiPoolClient, *, domain: str | None = None
) -> dict[str, Any]:
    """Return the domain, device, and raw channel ids without classifying.

    Args:
        client: API client.
        domain: Known domain; resolved from the account when omitted.
    """
    await client.async_login()
    if domain:
        info = await client.async_get_group_info(domain)
        return {
            "domain": domain,
            "device_uuid": first_device_uuid(info),
            "channels": io_ids(info),
        }
    resolved = await async_resolve_domain(client, login_user_id=client.auth.user_id)
    return {
        "domain": resolved.domain,
        "device_uuid": resolved.device_uuid,
        "channels": resolved.channels,
    }


async def async_auto_discover(
    client: WifiPoolClient,
    *,
    classifier: ChannelClassifier | None = None,
    now_ms: int | None = None,
) -> DiscoveryResult:
    """Resolve the domain and classify every candidate channel.

    Raises:
        WifiPoolError: Any resolution failure aborts the whole run.
    """
    await client.async_login()
    resolved = await async_resolve_domain(client, login_user_id=client.auth.user_id)
    _LOGGER.info("Device uuid = %s", resolved.device_uuid)

    io_map = await (classifier or ChannelClassifier()).async_discover(
        client,
        domain=resolved.domain,
        device_uuid=resolved.device_uuid,
        now_ms=now_ms,
    )
    return DiscoveryResult(
        io_map=io_map, name=device_name(io_map), channels=resolved.channels
    )
