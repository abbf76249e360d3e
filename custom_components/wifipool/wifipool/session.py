"""Cloud session management.

The WiFiPool cloud authenticates with an Express `connect.sid` cookie obtained
from `POST /users/login`. This module caches that cookie for a fixed TTL and
re-acquires it lazily when it expires or when a caller reports a 401.

This module intentionally avoids Home Assistant imports.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Callable, Iterable, cast

import aiohttp
import async_timeout

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    ProtocolError,
    TransportError,
)
from .util import mask_body

_LOGGER = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "connect.sid"
DEFAULT_SESSION_TTL_SECONDS = 15 * 60
LOGIN_PATH = "/users/login"
LOGIN_NAMESPACE = "default"

_SESSION_COOKIE_RE = re.compile(r"connect\.sid=([^;]+)")


def extract_session_cookie(set_cookie: str | Iterable[str] | None) -> str | None:
    """Pull the connect.sid value out of raw Set-Cookie header values.

    Args:
        set_cookie: One header value or an iterable of them.

    Returns:
        Cookie value without the `connect.sid=` prefix, or None.
    """
    if not set_cookie:
        return None
    values = [set_cookie] if isinstance(set_cookie, str) else list(set_cookie)
    for raw in values:
        m = _SESSION_COOKIE_RE.search(str(raw))
        if m:
            return m.group(1)
    return None


async def async_read_text(resp: aiohttp.ClientResponse, *, what: str) -> str:
    """Return the decoded response body.

    Raises:
        ProtocolError: If the body does not decode in the response charset.
    """
    try:
        return await resp.text()
    except UnicodeDecodeError as err:
        raise ProtocolError(
            f"{what} returned an undecodable body",
            body_excerpt=repr(err.object[:200]),
        ) from err


def _set_cookie_headers(headers: Any) -> list[str]:
    if headers is None:
        return []
    getall = getattr(headers, "getall", None)
    if callable(getall):
        return [str(v) for v in cast(Iterable[Any], getall("Set-Cookie", []))]
    value: Any = headers.get("Set-Cookie")
    if isinstance(value, (list, tuple)):
        return [str(v) for v in cast(Iterable[Any], value)]
    return [str(value)] if value else []


class WifiPoolSessionManager:
    """Owns the cached session cookie for one account."""

    def __init__(
        self,
        *,
        email: str | None,
        password: str | None,
        base_url: str,
        timeout_seconds: int,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.email = str(email or "").strip()
        self.password = str(password or "")
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock

        self._sid: str | None = None
        self._expires_at: float = 0.0
        self._user: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    @property
    def user_id(self) -> str | None:
        """Return the logged-in user's own identifier, if reported."""
        value: Any = (self._user or {}).get("mobile_user_id")
        return value if isinstance(value, str) and value else None

    @property
    def identity(self) -> str | None:
        """Return the account email as echoed by the cloud, if reported."""
        value: Any = (self._user or {}).get("mobile_user_mail")
        return value if isinstance(value, str) and value else None

    @property
    def is_valid(self) -> bool:
        """Return True while a cached cookie exists and has not expired."""
        return bool(self._sid) and self._clock() < self._expires_at

    def invalidate(self) -> None:
        """Drop the cached cookie so the next acquire logs in again."""
        self._sid = None
        self._expires_at = 0.0

    async def async_acquire(
        self, *, session: aiohttp.ClientSession, force: bool = False
    ) -> str:
        """Return a valid session cookie value, logging in if needed.

        Args:
            session: aiohttp session used for the login request.
            force: Ignore any cached cookie.

        Returns:
            connect.sid cookie value.

        Raises:
            ConfigurationError: If email or password is missing.
            AuthenticationError: If the login is rejected.
            ProtocolError: If the login succeeds without a usable cookie.
            TransportError: On network errors.
        """
        if force:
            self.invalidate()
        if self.is_valid:
            return cast(str, self._sid)

        async with self._lock:
            # Another caller may have logged in while we waited.
            if self.is_valid:
                return cast(str, self._sid)
            return await self._async_login(session=session)

    async def _async_login(self, *, session: aiohttp.ClientSession) -> str:
        if not self.email or not self.password:
            raise ConfigurationError("Email and password are required")

        body = {
            "email": self.email,
            "namespace": LOGIN_NAMESPACE,
            "password": self.password,
        }
        _LOGGER.debug("POST %s body=%s", LOGIN_PATH, mask_body(body))

        try:
            async with async_timeout.timeout(self.timeout_seconds):
                async with session.post(
                    f"{self.base_url}{LOGIN_PATH}",
                    json=body,
                    headers={"Content-Type": "application/json"},
                ) as resp:
                    status = resp.status
                    text = await async_read_text(resp, what=LOGIN_PATH)
                    sid: str | None = None
                    morsel = resp.cookies.get(SESSION_COOKIE_NAME)
                    if morsel is not None and morsel.value:
                        sid = morsel.value
                    if not sid:
                        sid = extract_session_cookie(_set_cookie_headers(resp.headers))
        except (asyncio.TimeoutError, aiohttp.ClientError) as err:
            raise TransportError(f"Error logging into WiFiPool: {err}") from err

        _LOGGER.debug("Login HTTP %s", status)
        if status != 200:
            self.invalidate()
            raise AuthenticationError(f"Login failed: HTTP {status}", status=status)
        if not sid:
            raise ProtocolError(
                "Login succeeded but no connect.sid cookie was returned",
                body_excerpt=text[:200],
            )

        self._user = None
        try:
            login_any: Any = json.loads(text) if text else {}
        except json.JSONDecodeError:
            login_any = {}
        if isinstance(login_any, dict):
            user_any: Any = cast(dict[str, Any], login_any).get("user")
            if isinstance(user_any, dict):
                self._user = cast(dict[str, Any], user_any)

        self._sid = sid
        self._expires_at = self._clock() + self.ttl_seconds
        _LOGGER.debug("Login OK, session cookie captured")
        return sid
