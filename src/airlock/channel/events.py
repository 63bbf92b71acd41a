# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Server-sent event framing and channel event decoding.

Pure functions and a line-fed decoder. No I/O, no routing: the reader
feeds lines in, the channel consumes the InboundEvents that come out.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SSEFrame:
    """One dispatched server-sent event."""

    data: str
    id: str | None = None
    event: str = "message"


class SSEDecoder:
    """Incremental SSE parser. Feed it lines; it returns completed frames.

    Follows the text/event-stream rules the ship relies on: ``data`` lines
    accumulate (joined with newlines), a blank line dispatches, lines
    starting with ``:`` are comments. The last seen ``id`` carries over
    to later frames that do not set one.
    """

    def __init__(self) -> None:
        self._data: list[str] = []
        self._event = ""
        self._last_id: str | None = None
        self.retry: int | None = None

    def feed(self, line: str) -> SSEFrame | None:
        """Consume one line (without its terminator)."""
        line = line.rstrip("\r")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        value = value.removeprefix(" ")
        if name == "data":
            self._data.append(value)
        elif name == "id":
            # Ids with NUL are ignored per the SSE rules.
            if "\0" not in value:
                self._last_id = value
        elif name == "event":
            self._event = value
        elif name == "retry":
            if value.isdigit():
                self.retry = int(value)
        return None

    def _dispatch(self) -> SSEFrame | None:
        if not self._data:
            self._event = ""
            return None
        frame = SSEFrame(
            data="\n".join(self._data),
            id=self._last_id,
            event=self._event or "message",
        )
        self._data = []
        self._event = ""
        return frame


class EventKind(enum.Enum):
    DIFF = "diff"
    POKE = "poke"
    SUBSCRIBE = "subscribe"
    QUIT = "quit"


@dataclass(frozen=True)
class InboundEvent:
    """A decoded channel event.

    ``id`` correlates to an outbound action: the subscription id for diff,
    quit and subscribe acks, the poke id for poke acks. ``event_id`` is the
    SSE-level id used for acknowledgement.
    """

    id: int
    kind: EventKind
    payload: Any = None
    error: str | None = None
    event_id: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _error_text(err: Any) -> str:
    """Flatten an error value (string or list of lines) into text."""
    if isinstance(err, str):
        return err
    if isinstance(err, list) and all(isinstance(e, str) for e in err):
        return "\n".join(err)
    return json.dumps(err)


def decode_event(frame: SSEFrame) -> InboundEvent | None:
    """Decode one frame. Returns None for anything that is not a channel event."""
    try:
        body = json.loads(frame.data)
    except json.JSONDecodeError:
        _log.debug("dropping non-JSON frame: %.100s", frame.data)
        return None
    if not isinstance(body, dict):
        _log.debug("dropping non-object frame: %.100s", frame.data)
        return None
    corr = body.get("id")
    if not isinstance(corr, int) or isinstance(corr, bool):
        _log.debug("dropping frame without integer id: %.100s", frame.data)
        return None
    try:
        kind = EventKind(body.get("response"))
    except ValueError:
        _log.debug("dropping frame with unknown response %r", body.get("response"))
        return None
    event_id: int | None = None
    if frame.id is not None and frame.id.isdigit():
        event_id = int(frame.id)
    err = body.get("err")
    return InboundEvent(
        id=corr,
        kind=kind,
        payload=body.get("json"),
        error=None if err is None else _error_text(err),
        event_id=event_id,
    )
