"""Tests for the WiFiPool telemetry client."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, cast

import aiohttp
import pytest
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from custom_components.wifipool.wifipool.client import (
    DEFAULT_BASE_URL,
    WifiPoolClient,
    is_sensor_rejection,
)
from custom_components.wifipool.wifipool.exceptions import (
    AuthenticationError,
    ChannelUnavailableError,
    ProtocolError,
    SensorWriteRejectedError,
    TelemetryError,
    TransportError,
)

BASE_URL = "https://api.example.test/native_mobile"
DOMAIN_ID = "0000000d-0000-4000-8000-00000000000d"
IO = "0000000e-0000-4000-8000-00000000000e.o3"


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
        self.calls: list[tuple[str, str, Any, dict[str, str]]] = []
        self._post_queue: list[_Resp | Exception] = []
        self._get_queue: list[_Resp | Exception] = []

    def queue_post(self, item: _Resp | Exception) -> None:
        self._post_queue.append(item)

    def queue_get(self, item: _Resp | Exception) -> None:
        self._get_queue.append(item)

    def post(self, url, json=None, headers=None, **_kwargs):
        self.calls.append(("POST", url, json, dict(headers or {})))
        item = self._post_queue.pop(0)
        if isinstance(item, Exception):
            raise item
        item.cookies = {k: _CookieMorsel(v) for k, v in (item.cookies or {}).items()}
        return item

    def get(self, url, headers=None, **_kwargs):
        self.calls.append(("GET", url, None, dict(headers or {})))
        item = self._get_queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _login(sid: str = "sid1") -> _Resp:
    return _Resp(200, '{"user":{}}', cookies={"connect.sid": sid})


def _client(sess: _Session) -> WifiPoolClient:
    return WifiPoolClient(
        email="owner@example.com",
        password="pw",
        base_url=BASE_URL,
        timeout_seconds=5,
        session=cast(aiohttp.ClientSession, sess),
    )


def test_is_sensor_rejection():
    assert is_sensor_rejection(403, "Manual IO on sensors is not allowed") is True
    assert is_sensor_rejection(403, "forbidden") is False
    assert is_sensor_rejection(500, "sensors") is False


async def test_get_samples_sends_cookie_and_body():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(
        _Resp(200, json.dumps([{"device_sensor_data": {"analog": {"0": 7.1}}}, 3]))
    )
    client = _client(sess)

    samples = await client.async_get_samples(DOMAIN_ID, IO, 123)

    assert samples == [{"device_sensor_data": {"analog": {"0": 7.1}}}]
    method, url, body, headers = sess.calls[-1]
    assert method == "POST"
    assert url == f"{BASE_URL}/harmopool/getStats"
    assert body == {"domain": DOMAIN_ID, "io": IO, "after": 123}
    assert headers["Cookie"] == "connect.sid=sid1"


async def test_get_samples_404_is_empty():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(_Resp(404, "Not Found"))

    assert await _client(sess).async_get_samples(DOMAIN_ID, IO, 0) == []


async def test_get_samples_other_error_raises_telemetry_error():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(_Resp(500, "boom"))

    with pytest.raises(TelemetryError) as excinfo:
        await _client(sess).async_get_samples(DOMAIN_ID, IO, 0)

    assert excinfo.value.status == 500
    assert excinfo.value.body == "boom"


async def test_undecodable_body_raises_protocol_error():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(_Resp(200, "", raw=b"\xff\xfe[]"))

    with pytest.raises(ProtocolError) as excinfo:
        await _client(sess).async_get_samples(DOMAIN_ID, IO, 0)

    assert "xff" in excinfo.value.body_excerpt


async def test_unauthorized_relogs_in_once_and_retries():
    sess = _Session()
    sess.queue_post(_login("old"))
    sess.queue_post(_Resp(401, "Unauthorized"))
    sess.queue_post(_login("new"))
    sess.queue_post(_Resp(200, "[]"))

    assert await _client(sess).async_get_samples(DOMAIN_ID, IO, 0) == []

    cookies = [h.get("Cookie") for m, u, _b, h in sess.calls if u.endswith("getStats")]
    assert cookies == ["connect.sid=old", "connect.sid=new"]


async def test_unauthorized_twice_raises_authentication_error():
    sess = _Session()
    sess.queue_post(_login("old"))
    sess.queue_post(_Resp(401, "Unauthorized"))
    sess.queue_post(_login("new"))
    sess.queue_post(_Resp(401, "Unauthorized"))
    client = _client(sess)

    with pytest.raises(AuthenticationError):
        await client.async_get_samples(DOMAIN_ID, IO, 0)

    assert client.auth.is_valid is False


async def test_accessible_groups_304_is_empty_list():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_get(_Resp(304, ""))

    assert await _client(sess).async_list_accessible_groups() == []
    method, url, _body, _headers = sess.calls[-1]
    assert (method, url) == ("GET", f"{BASE_URL}/groups/accessible")


async def test_group_info_requires_json_object():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(_Resp(200, "<html>"))
    client = _client(sess)

    with pytest.raises(ProtocolError):
        await client.async_get_group_info(DOMAIN_ID)

    sess.queue_post(_Resp(200, "[1, 2]"))
    with pytest.raises(ProtocolError):
        await client.async_get_group_info(DOMAIN_ID)


async def test_group_info_posts_domain_id():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(_Resp(200, '{"mobile_group_data": {"io": []}}'))

    info = await _client(sess).async_get_group_info(DOMAIN_ID)

    assert info == {"mobile_group_data": {"io": []}}
    assert sess.calls[-1][2] == {"domainId": DOMAIN_ID}


async def test_set_manual_value_outcomes():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(_Resp(200, "{}"))
    client = _client(sess)

    await client.async_set_manual_value(DOMAIN_ID, IO, True)
    assert sess.calls[-1][2] == {"domain": DOMAIN_ID, "io": IO, "value": True}

    sess.queue_post(_Resp(403, "Manual IO on sensors is not allowed"))
    with pytest.raises(SensorWriteRejectedError) as excinfo:
        await client.async_set_manual_value(DOMAIN_ID, IO, False)
    assert excinfo.value.status == 403

    sess.queue_post(_Resp(404, "Not Found"))
    with pytest.raises(ChannelUnavailableError):
        await client.async_set_manual_value(DOMAIN_ID, IO, False)

    sess.queue_post(_Resp(403, "Forbidden"))
    with pytest.raises(TelemetryError) as excinfo2:
        await client.async_set_manual_value(DOMAIN_ID, IO, False)
    assert not isinstance(excinfo2.value, SensorWriteRejectedError)


async def test_network_error_is_transport_error():
    sess = _Session()
    sess.queue_post(_login())
    sess.queue_post(aiohttp.ClientConnectionError("reset"))

    with pytest.raises(TransportError):
        await _client(sess).async_get_samples(DOMAIN_ID, IO, 0)


async def test_client_works_with_home_assistant_session(hass, aioclient_mock):
    aioclient_mock.post(
        f"{DEFAULT_BASE_URL}/users/login",
        status=200,
        text='{"user": {"mobile_user_mail": "owner@example.com"}}',
        cookies={"connect.sid": "abc"},
    )
    aioclient_mock.post(
        f"{DEFAULT_BASE_URL}/harmopool/getStats",
        status=200,
        text="[]",
    )

    client = WifiPoolClient(
        email="owner@example.com",
        password="pw",
        session=async_get_clientsession(hass),
    )
    assert await client.async_get_samples(DOMAIN_ID, IO, 0) == []
    assert client.auth.identity == "owner@example.com"

    stats_calls = [
        call
        for call in aioclient_mock.mock_calls
        if str(call[1]) == f"{DEFAULT_BASE_URL}/harmopool/getStats"
    ]
    assert stats_calls
    _method, _url, _data, headers = stats_calls[-1]
    assert (headers or {}).get("Cookie") == "connect.sid=abc"
