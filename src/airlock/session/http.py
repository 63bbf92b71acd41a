# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""HTTP ship session: cookie-authenticated requests over httpx."""

from __future__ import annotations

import itertools
import logging
from collections.abc import AsyncIterator
from types import TracebackType
from typing import TYPE_CHECKING, Any

import httpx

from airlock.session.base import Action, LoginError, TransportError

if TYPE_CHECKING:
    from airlock.channel.channel import Channel

_log = logging.getLogger(__name__)

_COOKIE_PREFIX = "urbauth-~"
DEFAULT_TIMEOUT = 30.0


def _parse_auth_cookie(set_cookie: str) -> tuple[str, str]:
    """Split a login ``set-cookie`` value into (cookie, ship name).

    ``urbauth-~zod=0v5.abc; Path=/; Max-Age=604800`` -> ("urbauth-~zod=0v5.abc", "zod").
    """
    cookie = set_cookie.split(";", 1)[0].strip()
    name, sep, _ = cookie.partition("=")
    if not sep or not name.startswith(_COOKIE_PREFIX):
        raise LoginError(f"unexpected auth cookie: {cookie!r}")
    ship = name[len(_COOKIE_PREFIX) :]
    if not ship:
        raise LoginError(f"auth cookie names no ship: {cookie!r}")
    return cookie, ship


class HttpShipSession:
    """Authenticated session with one ship.

    Owns (or borrows) an ``httpx.AsyncClient``. Every request carries the
    auth cookie explicitly. Non-2xx responses raise TransportError; nothing
    is retried.
    """

    def __init__(
        self,
        url: str,
        ship: str,
        cookie: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._url = url.rstrip("/")
        self._ship = ship
        self._cookie = cookie
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout
        self._sequence = itertools.count(1)

    @classmethod
    async def login(
        cls,
        url: str,
        code: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> HttpShipSession:
        """Log in with the ship's ``+code`` and return a session."""
        owns = client is None
        http = client or httpx.AsyncClient(timeout=timeout)
        login_url = f"{url.rstrip('/')}/~/login"
        try:
            resp = await http.post(login_url, data={"password": code})
        except httpx.HTTPError as exc:
            if owns:
                await http.aclose()
            raise LoginError(f"login request to {login_url} failed: {exc}") from exc
        set_cookie = resp.headers.get("set-cookie")
        try:
            if resp.is_error or set_cookie is None:
                raise LoginError(
                    f"login to {login_url} failed with status {resp.status_code}",
                    status_code=resp.status_code,
                    response=resp,
                )
            cookie, ship = _parse_auth_cookie(set_cookie)
        except LoginError:
            if owns:
                await http.aclose()
            raise
        _log.info("logged in to ~%s at %s", ship, url)
        session = cls(url, ship, cookie, client=http, timeout=timeout)
        session._owns_client = owns
        return session

    # -- ShipSession ----------------------------------------------------------

    @property
    def ship(self) -> str:
        return self._ship

    @property
    def url(self) -> str:
        return self._url

    def next_sequence(self) -> int:
        return next(self._sequence)

    def channel_url(self, channel_uid: str) -> str:
        return f"{self._url}/~/channel/{channel_uid}"

    async def send_action_batch(
        self,
        channel_uid: str,
        actions: list[Action],
    ) -> httpx.Response:
        """PUT an action batch to the channel endpoint."""
        return await self._request(
            "PUT",
            self.channel_url(channel_uid),
            json=actions,
        )

    async def open_event_stream(
        self,
        channel_uid: str,
        last_event_id: int | None = None,
    ) -> AsyncIterator[str]:
        """Stream raw SSE lines until the ship closes the connection."""
        headers = {**self._headers(), "Accept": "text/event-stream"}
        if last_event_id is not None:
            headers["Last-Event-ID"] = str(last_event_id)
        url = self.channel_url(channel_uid)
        try:
            async with self._client.stream(
                "GET",
                url,
                headers=headers,
                timeout=httpx.Timeout(self._timeout, read=None),
            ) as resp:
                if resp.is_error:
                    raise TransportError(
                        f"GET {url} returned {resp.status_code}",
                        status_code=resp.status_code,
                        response=resp,
                    )
                async for line in resp.aiter_lines():
                    yield line
        except httpx.HTTPError as exc:
            raise TransportError(f"event stream {url} failed: {exc}") from exc

    # -- Other endpoints ------------------------------------------------------

    async def scry(self, app: str, path: str, mark: str = "json") -> httpx.Response:
        """Read-only query of an app's state."""
        return await self._request("GET", f"{self._url}/~/scry/{app}{path}.{mark}")

    async def spider(
        self,
        input_mark: str,
        output_mark: str,
        thread: str,
        body: Any,
    ) -> httpx.Response:
        """Run a one-shot thread and return its result."""
        url = f"{self._url}/spider/{input_mark}/{thread}/{output_mark}.json"
        return await self._request("POST", url, json=body)

    async def create_channel(self, **kwargs: Any) -> Channel:
        """Open a new Channel on this session. See airlock.channel.create_channel."""
        from airlock.channel.channel import create_channel

        return await create_channel(self, **kwargs)

    async def aclose(self) -> None:
        """Close the underlying client if this session created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpShipSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -- Private --------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Cookie": self._cookie}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, url, headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        if resp.is_error:
            raise TransportError(
                f"{method} {url} returned {resp.status_code}",
                status_code=resp.status_code,
                response=resp,
            )
        return resp
