"""Tests for the cloud session manager."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, cast

import aiohttp
import pytest

from custom_components.wifipool.wifipool.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ProtocolError,
    TransportError,
)
from custom_components.wifipool.wifipool.session import (
    WifiPoolSessionManager,
    extract_session_cookie,
)

BASE_URL = "https://api.example.test/native_mobile"

LOGIN_BODY = json.dumps(
    {
        "user": {
            "mobile_user_id": "0000000a-0000-4000-8000-00000000000a",
            "mobile_user_mail": "owner@example.com",
        }
    }
)


@dataclass
class _Resp:
    status: int
    body: str
    cookies: dict[str, Any] | None = None
    headers: Any = None
    raw: bytes | None = None

    def __post_init__(self):
        self.headers = self.headers or {"Content-Type": "application/json"}
        self.cookies = self.cookies or {}

    async def text(self) -> str:
        if self.raw is not None:
            return self.raw.decode("utf-8")
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _CookieMorsel:
    def __init__(self, value: str):
        self.value = value


class _Session:
    def __init__(self):
        self.posts: list[tuple[str, Any]] = []
        self._post_queue: list[_Resp | Exception] = []

    def queue_post(self, item: _Resp | Exception) -> None:
        self._post_queue.append(item)

    def post(self, url, json=None, **_kwargs):
        self.posts.append((url, json))
        item = self._post_queue.pop(0)
        if isinstance(item, Exception):
            raise item
        # Simulate aiohttp response cookies mapping.
        item.cookies = {k: _CookieMorsel(v) for k, v in (item.cookies or {}).items()}
        return item


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _manager(
    *, email: str = "owner@example.com", password: str = "pw", clock=None
) -> WifiPoolSessionManager:
    return WifiPoolSessionManager(
        email=email,
        password=password,
        base_url=BASE_URL,
        timeout_seconds=5,
        ttl_seconds=900,
        clock=clock or _Clock(),
    )


def _ok_login(sid: str = "s%3Aabc") -> _Resp:
    return _Resp(200, LOGIN_BODY, cookies={"connect.sid": sid})


def test_extract_session_cookie_variants():
    assert extract_session_cookie(None) is None
    assert extract_session_cookie("") is None
    assert extract_session_cookie("connect.sid=abc; Path=/; HttpOnly") == "abc"
    assert (
        extract_session_cookie(["other=1; Path=/", "connect.sid=xyz; Path=/"])
        == "xyz"
    )
    assert extract_session_cookie(["other=1"]) is None


async def test_login_posts_credentials_and_captures_cookie():
    sess = _Session()
    sess.queue_post(_ok_login())
    mgr = _manager()

    sid = await mgr.async_acquire(session=cast(aiohttp.ClientSession, sess))

    assert sid == "s%3Aabc"
    url, body = sess.posts[0]
    assert url == f"{BASE_URL}/users/login"
    assert body == {
        "email": "owner@example.com",
        "namespace": "default",
        "password": "pw",
    }
    assert mgr.identity == "owner@example.com"
    assert mgr.user_id == "0000000a-0000-4000-8000-00000000000a"
    assert mgr.is_valid is True


async def test_cookie_is_reused_within_ttl_and_renewed_after():
    clock = _Clock()
    sess = _Session()
    sess.queue_post(_ok_login("first"))
    sess.queue_post(_ok_login("second"))
    mgr = _manager(clock=clock)
    session = cast(aiohttp.ClientSession, sess)

    assert await mgr.async_acquire(session=session) == "first"
    clock.now += 899
    assert await mgr.async_acquire(session=session) == "first"
    assert len(sess.posts) == 1

    clock.now += 2
    assert await mgr.async_acquire(session=session) == "second"
    assert len(sess.posts) == 2


async def test_force_and_invalidate_trigger_new_login():
    sess = _Session()
    for sid in ("a", "b", "c"):
        sess.queue_post(_ok_login(sid))
    mgr = _manager()
    session = cast(aiohttp.ClientSession, sess)

    assert await mgr.async_acquire(session=session) == "a"
    assert await mgr.async_acquire(session=session, force=True) == "b"
    mgr.invalidate()
    assert mgr.is_valid is False
    assert await mgr.async_acquire(session=session) == "c"


async def test_cookie_falls_back_to_set_cookie_header():
    sess = _Session()
    sess.queue_post(
        _Resp(
            200,
            "{}",
            headers={"Set-Cookie": "connect.sid=fromheader; Path=/; HttpOnly"},
        )
    )
    mgr = _manager()

    sid = await mgr.async_acquire(session=cast(aiohttp.ClientSession, sess))

    assert sid == "fromheader"
    assert mgr.identity is None


async def test_rejected_login_raises_authentication_error():
    sess = _Session()
    sess.queue_post(_Resp(401, '{"message":"bad"}'))
    mgr = _manager()

    with pytest.raises(AuthenticationError) as excinfo:
        await mgr.async_acquire(session=cast(aiohttp.ClientSession, sess))

    assert excinfo.value.status == 401
    assert mgr.is_valid is False


async def test_login_without_cookie_is_protocol_error():
    sess = _Session()
    sess.queue_post(_Resp(200, '{"user":{}}'))
    mgr = _manager()

    with pytest.raises(ProtocolError) as excinfo:
        await mgr.async_acquire(session=cast(aiohttp.ClientSession, sess))

    assert '{"user":{}}' in excinfo.value.body_excerpt


async def test_undecodable_login_body_is_protocol_error():
    sess = _Session()
    sess.queue_post(_Resp(200, "", cookies={"connect.sid": "sid"}, raw=b"\xff{}"))
    mgr = _manager()

    with pytest.raises(ProtocolError):
        await mgr.async_acquire(session=cast(aiohttp.ClientSession, sess))

    assert mgr.is_valid is False


async def test_missing_credentials_raise_configuration_error():
    sess = _Session()
    mgr = _manager(password="")

    with pytest.raises(ConfigurationError):
        await mgr.async_acquire(session=cast(aiohttp.ClientSession, sess))

    assert sess.posts == []


async def test_network_error_is_transport_error():
    sess = _Session()
    sess.queue_post(aiohttp.ClientConnectionError("down"))
    mgr = _manager()

    with pytest.raises(TransportError):
        await mgr.async_acquire(session=cast(aiohttp.ClientSession, sess))
