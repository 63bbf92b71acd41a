# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for HttpShipSession against an in-process mock transport."""

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from airlock.session import HttpShipSession, LoginError, ShipSession, TransportError
from airlock.session.http import _parse_auth_cookie

URL = "http://ship.test"
COOKIE = "urbauth-~zod=0v5.abcde"
SET_COOKIE = f"{COOKIE}; Path=/; Max-Age=604800"

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """Mock transport handler that records requests and replays a script."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def _session(recorder: Recorder) -> HttpShipSession:
    return HttpShipSession(URL, "zod", COOKIE, client=recorder.client())


def _sse(*events: tuple[int, dict[str, object]]) -> bytes:
    return "".join(
        f"id: {event_id}\ndata: {json.dumps(body)}\n\n" for event_id, body in events
    ).encode()


# -- Cookie parsing --------------------------------------------------------------


class TestParseAuthCookie:
    def test_cookie_and_ship(self) -> None:
        assert _parse_auth_cookie(SET_COOKIE) == (COOKIE, "zod")

    def test_bare_cookie(self) -> None:
        assert _parse_auth_cookie("urbauth-~sampel-palnet=0v1") == (
            "urbauth-~sampel-palnet=0v1",
            "sampel-palnet",
        )

    @pytest.mark.parametrize(
        "value", ["session=abc; Path=/", "urbauth-~=0v1", "urbauth-~zod"]
    )
    def test_malformed(self, value: str) -> None:
        with pytest.raises(LoginError):
            _parse_auth_cookie(value)


# -- Login -----------------------------------------------------------------------


class TestLogin:
    async def test_login_success(self) -> None:
        rec = Recorder(lambda r: httpx.Response(204, headers={"set-cookie": SET_COOKIE}))
        session = await HttpShipSession.login(URL, "lidlut-tabwed", client=rec.client())
        assert session.ship == "zod"
        assert session.url == URL
        (req,) = rec.requests
        assert req.method == "POST"
        assert req.url.path == "/~/login"
        assert req.content == b"password=lidlut-tabwed"
        await session.aclose()

    async def test_login_cookie_used_afterwards(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/~/login":
                return httpx.Response(204, headers={"set-cookie": SET_COOKIE})
            return httpx.Response(204)

        rec = Recorder(handler)
        session = await HttpShipSession.login(URL, "code", client=rec.client())
        await session.send_action_batch("c1", [])
        assert rec.requests[-1].headers["cookie"] == COOKIE

    async def test_wrong_code(self) -> None:
        rec = Recorder(lambda r: httpx.Response(400))
        with pytest.raises(LoginError) as exc_info:
            await HttpShipSession.login(URL, "nope", client=rec.client())
        assert exc_info.value.status_code == 400

    async def test_no_cookie(self) -> None:
        rec = Recorder(lambda r: httpx.Response(204))
        with pytest.raises(LoginError):
            await HttpShipSession.login(URL, "code", client=rec.client())

    async def test_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LoginError) as exc_info:
            await HttpShipSession.login(URL, "code", client=Recorder(handler).client())
        assert exc_info.value.status_code is None


# -- Requests --------------------------------------------------------------------


class TestRequests:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(_session(Recorder(lambda r: httpx.Response(204))), ShipSession)

    def test_sequence_increases(self) -> None:
        session = _session(Recorder(lambda r: httpx.Response(204)))
        assert [session.next_sequence() for _ in range(3)] == [1, 2, 3]

    async def test_action_batch_is_put(self) -> None:
        rec = Recorder(lambda r: httpx.Response(204))
        session = _session(rec)
        actions = [{"id": 1, "action": "poke", "ship": "zod", "app": "hood"}]
        resp = await session.send_action_batch("123-1-abc", actions)
        assert resp.status_code == 204
        (req,) = rec.requests
        assert req.method == "PUT"
        assert str(req.url) == f"{URL}/~/channel/123-1-abc"
        assert req.headers["cookie"] == COOKIE
        assert json.loads(req.content) == actions

    async def test_error_status_raises(self) -> None:
        session = _session(Recorder(lambda r: httpx.Response(500, text="crash")))
        with pytest.raises(TransportError) as exc_info:
            await session.send_action_batch("c1", [])
        assert exc_info.value.status_code == 500
        assert exc_info.value.response is not None
        assert exc_info.value.response.text == "crash"

    async def test_network_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        session = _session(Recorder(handler))
        with pytest.raises(TransportError) as exc_info:
            await session.send_action_batch("c1", [])
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)

    async def test_trailing_slash_trimmed(self) -> None:
        rec = Recorder(lambda r: httpx.Response(204))
        session = HttpShipSession(f"{URL}/", "zod", COOKIE, client=rec.client())
        await session.send_action_batch("c1", [])
        assert str(rec.requests[0].url) == f"{URL}/~/channel/c1"

    async def test_scry(self) -> None:
        rec = Recorder(lambda r: httpx.Response(200, json={"graph-update": {}}))
        session = _session(rec)
        resp = await session.scry("graph-store", "/keys")
        assert resp.json() == {"graph-update": {}}
        assert str(rec.requests[0].url) == f"{URL}/~/scry/graph-store/keys.json"
        assert rec.requests[0].method == "GET"

    async def test_spider(self) -> None:
        rec = Recorder(lambda r: httpx.Response(200, json="done"))
        session = _session(rec)
        body = {"create": {"resource": {"ship": "~zod", "name": "x"}}}
        await session.spider("graph-view-action", "json", "graph-create", body)
        (req,) = rec.requests
        assert req.method == "POST"
        assert str(req.url) == f"{URL}/spider/graph-view-action/graph-create/json.json"
        assert json.loads(req.content) == body

    async def test_borrowed_client_not_closed(self) -> None:
        rec = Recorder(lambda r: httpx.Response(204))
        client = rec.client()
        async with HttpShipSession(URL, "zod", COOKIE, client=client):
            pass
        assert not client.is_closed
        await client.aclose()


# -- Event stream ----------------------------------------------------------------


class TestEventStream:
    async def test_lines_yielded(self) -> None:
        body = _sse((1, {"id": 1, "response": "diff", "json": "A"}))
        rec = Recorder(
            lambda r: httpx.Response(
                200, content=body, headers={"content-type": "text/event-stream"}
            )
        )
        session = _session(rec)
        lines = [line async for line in session.open_event_stream("c1")]
        assert lines == ["id: 1", 'data: {"id": 1, "response": "diff", "json": "A"}', ""]
        req = rec.requests[0]
        assert req.method == "GET"
        assert req.headers["accept"] == "text/event-stream"
        assert req.headers["cookie"] == COOKIE
        assert "last-event-id" not in req.headers

    async def test_last_event_id_header(self) -> None:
        rec = Recorder(lambda r: httpx.Response(200, content=b""))
        session = _session(rec)
        _ = [line async for line in session.open_event_stream("c1", last_event_id=12)]
        assert rec.requests[0].headers["last-event-id"] == "12"

    async def test_error_status_raises(self) -> None:
        session = _session(Recorder(lambda r: httpx.Response(404)))
        with pytest.raises(TransportError) as exc_info:
            _ = [line async for line in session.open_event_stream("c1")]
        assert exc_info.value.status_code == 404


# -- End to end over the mock ----------------------------------------------------


async def test_channel_over_http() -> None:
    """Subscribe, receive two diffs, pop them in order."""
    stream = _sse(
        (1, {"id": 1, "response": "subscribe", "ok": "ok"}),
        (2, {"id": 1, "response": "diff", "json": "A"}),
        (3, {"id": 1, "response": "diff", "json": "B"}),
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=stream)
        return httpx.Response(204)

    rec = Recorder(handler)
    session = _session(rec)
    channel = await session.create_channel()
    assert await channel.create_new_subscription("graph-store", "/updates") == 1
    for _ in range(1000):
        if channel.reader.closed:
            break
        await asyncio.sleep(0)
    assert channel.parse_event_messages() == 2
    assert channel.stream_closed
    sub = channel.find_subscription("graph-store", "/updates")
    assert sub is not None
    assert [sub.pop_message(), sub.pop_message(), sub.pop_message()] == ["A", "B", None]
    await channel.delete_channel()
    methods = [r.method for r in rec.requests]
    assert methods == ["PUT", "GET", "PUT"]
    delete = json.loads(rec.requests[-1].content)
    assert delete == [{"id": 2, "action": "delete"}]
