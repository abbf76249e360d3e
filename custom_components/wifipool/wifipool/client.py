"""Standalone async API client for the WiFiPool cloud.

This client owns connection details and the session manager, and wraps the
four telemetry operations needed for discovery and polling. It performs no
retries of its own beyond re-login after a rejected session; retry policy
belongs to the callers.

This module intentionally avoids Home Assistant imports.
"""

from __future__ import annotations

import asyncio
import json
import logging
from http import HTTPStatus
from typing import Any, cast

import aiohttp
import async_timeout

from .exceptions import (
    AuthenticationError,
    ChannelUnavailableError,
    ProtocolError,
    SensorWriteRejectedError,
    TelemetryError,
    TransportError,
)
from .session import (
    DEFAULT_SESSION_TTL_SECONDS,
    WifiPoolSessionManager,
    async_read_text,
)
from .util import mask_body

_LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.wifipool.eu/native_mobile"
_DEFAULT_TIMEOUT_SECONDS = 10

PATH_GROUPS_ACCESSIBLE = "/groups/accessible"
PATH_GROUP_INFO = "/groups/getInfo"
PATH_GET_STATS = "/harmopool/getStats"
PATH_SET_MANUAL_IO = "/harmopool/setManualIO"

# Fragment of the 403 body returned when writing to an input channel.
SENSOR_REJECTION_MARKER = "sensors"


def _parse_json(text: str, *, what: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as err:
        raise ProtocolError(
            f"{what} returned non-JSON response", body_excerpt=text[:200]
        ) from err


def is_sensor_rejection(status: int, body: str) -> bool:
    """Return True when a write failure means the channel is a read-only sensor."""
    return status == HTTPStatus.FORBIDDEN and SENSOR_REJECTION_MARKER in (
        body or ""
    ).lower()


class WifiPoolClient:
    """Async client for the WiFiPool native_mobile endpoints."""

    def __init__(
        self,
        *,
        email: str | None,
        password: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: int | None = None,
        session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = str(base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_seconds = int(timeout_seconds or _DEFAULT_TIMEOUT_SECONDS)

        self._session = session
        self._owns_session = session is None

        self.auth = WifiPoolSessionManager(
            email=email,
            password=password,
            base_url=self.base_url,
            timeout_seconds=self.timeout_seconds,
            ttl_seconds=session_ttl_seconds,
        )

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def async_close(self) -> None:
        """Close any internally-owned aiohttp session."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def async_login(self, *, force: bool = False) -> str:
        """Ensure a session cookie exists and return it."""
        return await self.auth.async_acquire(session=self.session, force=force)

    async def _async_request(
        self, method: str, path: str, *, body: dict[str, Any] | None = None
    ) -> tuple[int, str]:
        """Send one authenticated request and return (status, text).

        A 401 drops the cached session and the request is sent once more with
        a fresh login.

        Raises:
            AuthenticationError: If the cloud keeps rejecting the session.
            TransportError: On network errors.
        """
        url = f"{self.base_url}{path}"

        async def _do(*, sid: str) -> tuple[int, str]:
            headers: dict[str, str] = {
                "Accept": "application/json",
                "Cookie": f"connect.sid={sid}",
            }
            if body is not None:
                headers["Content-Type"] = "application/json"
            _LOGGER.debug("%s %s body=%s", method, path, mask_body(body))
            async with async_timeout.timeout(self.timeout_seconds):
                if method == "GET":
                    request = self.session.get(url, headers=headers)
                else:
                    request = self.session.post(url, json=body, headers=headers)
                async with request as resp:
                    text = await async_read_text(resp, what=path)
                    _LOGGER.debug("%s %s HTTP %s", method, path, resp.status)
                    return resp.status, text

        try:
            sid = await self.async_login()
            status, text = await _do(sid=sid)
            if status == HTTPStatus.UNAUTHORIZED:
                _LOGGER.debug("Session rejected on %s; logging in again", path)
                self.auth.invalidate()
                sid = await self.async_login()
                status, text = await _do(sid=sid)
                if status == HTTPStatus.UNAUTHORIZED:
                    self.auth.invalidate()
                    raise AuthenticationError(
                        f"{path} rejected the session", status=status
                    )
        except (asyncio.TimeoutError, aiohttp.ClientError) as err:
            raise TransportError(f"Error calling {path}: {err}") from err
        return status, text

    async def async_list_accessible_groups(self) -> Any:
        """Return the raw `groups/accessible` payload.

        Returns:
            Arbitrary nested JSON; normally a list of group objects.

        Raises:
            TelemetryError: On a non-2xx response.
            ProtocolError: If the body is not JSON.
        """
        status, text = await self._async_request("GET", PATH_GROUPS_ACCESSIBLE)
        if status == HTTPStatus.NOT_MODIFIED:
            return []
        if not 200 <= status < 300:
            raise TelemetryError(
                f"groups/accessible failed: HTTP {status}", status=status, body=text
            )
        return _parse_json(text, what="groups/accessible")

    async def async_get_group_info(self, domain: str) -> dict[str, Any]:
        """Return the group info object for a domain.

        Args:
            domain: Candidate domain identifier.

        Returns:
            Parsed JSON object, normally carrying `mobile_group_data`.

        Raises:
            TelemetryError: On a non-2xx response.
            ProtocolError: If the body is not a JSON object.
        """
        status, text = await self._async_request(
            "POST", PATH_GROUP_INFO, body={"domainId": domain}
        )
        if not 200 <= status < 300:
            raise TelemetryError(
                f"groups/getInfo failed: HTTP {status}", status=status, body=text
            )
        info_any = _parse_json(text, what="groups/getInfo")
        if not isinstance(info_any, dict):
            raise ProtocolError(
                "groups/getInfo response was not a JSON object",
                body_excerpt=text[:200],
            )
        return cast(dict[str, Any], info_any)

    async def async_get_samples(
        self, domain: str, io: str, after: int
    ) -> list[dict[str, Any]]:
        """Return samples for one channel, oldest first.

        Args:
            domain: Pool domain identifier.
            io: Channel id, `<device>.<i|o><n>`.
            after: Lower time bound, in whatever epoch unit the caller chose.

        Returns:
            Sample objects; empty when the channel is unknown (HTTP 404).

        Raises:
            TelemetryError: On any other non-2xx response.
            ProtocolError: If the body is not JSON.
        """
        status, text = await self._async_request(
            "POST", PATH_GET_STATS, body={"domain": domain, "io": io, "after": after}
        )
        if status == HTTPStatus.NOT_FOUND:
            _LOGGER.debug("Unknown io %s", io)
            return []
        if not 200 <= status < 300:
            raise TelemetryError(
                f"getStats failed for {io}: HTTP {status}", status=status, body=text
            )
        samples_any = _parse_json(text, what="getStats")
        if not isinstance(samples_any, list):
            return []
        return [
            cast(dict[str, Any], s)
            for s in cast(list[Any], samples_any)
            if isinstance(s, dict)
        ]

    async def async_set_manual_value(self, domain: str, io: str, value: bool) -> None:
        """Set one output channel's manual value.

        Raises:
            SensorWriteRejectedError: If the cloud refuses because the channel
                is a sensor.
            ChannelUnavailableError: If the channel does not exist.
            TelemetryError: On any other non-2xx response.
        """
        status, text = await self._async_request(
            "POST",
            PATH_SET_MANUAL_IO,
            body={"domain": domain, "io": io, "value": bool(value)},
        )
        if 200 <= status < 300:
            return
        if is_sensor_rejection(status, text):
            raise SensorWriteRejectedError(
                f"setManualIO rejected for {io}: {text.strip()[:200]}",
                status=status,
                body=text,
            )
        if status == HTTPStatus.NOT_FOUND:
            raise ChannelUnavailableError(f"Unknown io {io}")
        raise TelemetryError(
            f"setManualIO failed for {io}: HTTP {status}", status=status, body=text
        )
