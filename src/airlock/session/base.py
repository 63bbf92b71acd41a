# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Ship session protocol: the authenticated primitives a Channel needs."""

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

import httpx

Action = dict[str, Any]


class TransportError(Exception):
    """An HTTP request to the ship failed or returned a non-success status.

    ``status_code`` is None when no response was received at all.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class LoginError(TransportError):
    """The ship rejected the login code or sent no session cookie."""


@runtime_checkable
class ShipSession(Protocol):
    """An authenticated handle on one ship.

    Login is a precondition: implementations are constructed already
    holding a valid credential. Nothing here retries.
    """

    @property
    def ship(self) -> str:
        """Ship name without the leading ``~`` (e.g. "zod")."""
        ...

    def next_sequence(self) -> int:
        """Next value of the per-session counter. Strictly increasing."""
        ...

    async def send_action_batch(
        self,
        channel_uid: str,
        actions: list[Action],
    ) -> httpx.Response:
        """Send an ordered action batch. Raises TransportError on failure."""
        ...

    def open_event_stream(
        self,
        channel_uid: str,
        last_event_id: int | None = None,
    ) -> AsyncIterator[str]:
        """Open the channel's SSE stream and yield raw lines."""
        ...
