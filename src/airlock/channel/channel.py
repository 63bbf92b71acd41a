# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Channel: one outbound action sequence, one inbound event stream."""

from __future__ import annotations

import logging
import secrets
import time
from types import TracebackType
from typing import Any

import httpx

from airlock.channel.events import EventKind, InboundEvent
from airlock.channel.model import Subscription
from airlock.channel.reader import EventStreamReader
from airlock.logging import EventLog, log_method
from airlock.session.base import Action, ShipSession

_log = logging.getLogger(__name__)


class ChannelClosedError(RuntimeError):
    """Raised when an operation is attempted on a deleted channel."""


def new_channel_uid(session: ShipSession) -> str:
    """UNIX time, per-session sequence number and a random suffix."""
    return f"{int(time.time())}-{session.next_sequence()}-{secrets.token_hex(3)}"


class Channel:
    """Multiplexes pokes and subscriptions over a single ship channel.

    Outbound ids start at 1 and advance once per action, whether or not
    the request succeeds. Inbound events sit in the reader's queue until
    parse_event_messages() routes them to subscriptions by correlation id.

    Not safe for concurrent mutation from several tasks: one caller task
    drives a channel.
    """

    def __init__(
        self,
        session: ShipSession,
        uid: str | None = None,
        *,
        log: EventLog | None = None,
        max_queue: int = 0,
    ) -> None:
        self._session = session
        self._uid = uid or new_channel_uid(session)
        self._log = log
        self._max_queue = max_queue
        self._subscriptions: list[Subscription] = []
        self._next_id = 1
        self._reader = EventStreamReader(session, self._uid, max_queue=max_queue)
        self._unacked: int | None = None  # Highest SSE event id not yet acked.
        self._established = False
        self._stream_closed = False
        self._deleted = False

    # -- Properties -----------------------------------------------------------

    @property
    def uid(self) -> str:
        return self._uid

    @property
    def path(self) -> str:
        """Endpoint path relative to the ship URL."""
        return f"/~/channel/{self._uid}"

    @property
    def session(self) -> ShipSession:
        return self._session

    @property
    def reader(self) -> EventStreamReader:
        return self._reader

    @property
    def subscriptions(self) -> list[Subscription]:
        """Snapshot of registered subscriptions in insertion order."""
        return list(self._subscriptions)

    @property
    def next_id(self) -> int:
        """The id the next outbound action will get."""
        return self._next_id

    @property
    def stream_closed(self) -> bool:
        """True once the stream ended and every queued event was parsed."""
        return self._stream_closed

    @property
    def deleted(self) -> bool:
        return self._deleted

    # -- Lifecycle ------------------------------------------------------------

    def start(self) -> None:
        """Start the event stream reader. Called once by create_channel()."""
        self._check_open()
        self._reader.start()
        if self._log is not None:
            self._log.log("channel.created", {"uid": self._uid})

    async def __aenter__(self) -> Channel:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if not self._deleted:
            await self.delete_channel()

    # -- Outbound -------------------------------------------------------------

    @log_method(before=True, after=True)
    async def poke(self, app: str, mark: str, json: Any) -> httpx.Response:
        """Send one poke. Success means the ship accepted the request."""
        return await self._send(
            [
                {
                    "action": "poke",
                    "ship": self._session.ship,
                    "app": app,
                    "mark": mark,
                    "json": json,
                }
            ]
        )

    @log_method(before=True, after=True)
    async def create_new_subscription(self, app: str, path: str) -> int:
        """Subscribe to app/path. Returns the subscription id."""
        batch = self._stamp(
            [
                {
                    "action": "subscribe",
                    "ship": self._session.ship,
                    "app": app,
                    "path": path,
                }
            ]
        )
        sub_id: int = batch[-1]["id"]
        await self._post(batch)
        self._subscriptions.append(
            Subscription(channel_uid=self._uid, id=sub_id, app=app, path=path)
        )
        _log.debug("channel %s subscribed to %s%s as %d", self._uid, app, path, sub_id)
        return sub_id

    @log_method(before=True, after=True)
    async def unsubscribe(self, app: str, path: str) -> bool:
        """Drop a subscription matching app/path.

        The first ACTIVE match is torn down on the ship with a fresh action
        id. With no ACTIVE match, the first one the ship already quit is
        just removed. Returns False if nothing matched.
        """
        self._check_open()
        sub = next(
            (s for s in self._subscriptions if s.matches(app, path) and s.active),
            None,
        )
        if sub is None:
            sub = self.find_subscription(app, path)
        if sub is None:
            return False
        if sub.active:
            await self._send([{"action": "unsubscribe", "subscription": sub.id}])
            sub.unsubscribe()
        self._subscriptions.remove(sub)
        return True

    @log_method(after=True)
    async def ack(self) -> bool:
        """Acknowledge every event parsed so far. False if nothing was pending."""
        self._check_open()
        if self._unacked is None:
            return False
        await self._send([])
        return True

    @log_method(before=True, after=True)
    async def delete_channel(self) -> None:
        """Delete the channel on the ship and stop the reader.

        The reader is joined and the channel is unusable afterwards even if
        the delete request itself fails.
        """
        self._check_open()
        try:
            await self._post(self._stamp([{"action": "delete"}], with_ack=False))
        finally:
            self._deleted = True
            await self._reader.close()

    @log_method(after=True)
    async def reopen_stream(self) -> None:
        """Start a new reader after the stream closed, resuming from the last event."""
        self._check_open()
        if not self._reader.closed:
            raise RuntimeError(f"event stream for channel {self._uid} is still open")
        # Route whatever the old reader queued before it is dropped.
        self.parse_event_messages()
        last = self._reader.last_event_id
        self._reader = EventStreamReader(
            self._session,
            self._uid,
            max_queue=self._max_queue,
            last_event_id=last,
        )
        self._stream_closed = False
        self._reader.start()
        if self._established:
            self._reader.mark_ready()
        _log.info("reopened event stream for channel %s from event %s", self._uid, last)

    # -- Inbound --------------------------------------------------------------

    def parse_event_messages(self) -> int:
        """Route every queued event to its subscription. Never waits.

        Returns the number of messages delivered to subscriptions.
        """
        delivered = 0
        while (event := self._reader.next()) is not None:
            if event.event_id is not None:
                self._unacked = max(event.event_id, self._unacked or 0)
            if self._route(event):
                delivered += 1
        if self._reader.closed and not self._stream_closed and not self._reader.pending:
            self._stream_closed = True
            _log.warning(
                "event stream for channel %s closed; no further events will arrive",
                self._uid,
            )
            if self._log is not None:
                self._log.log(
                    "stream.closed",
                    {"error": None if self._reader.error is None else str(self._reader.error)},
                )
        return delivered

    def find_subscription(self, app: str, path: str) -> Subscription | None:
        """First subscription in insertion order matching app/path."""
        for sub in self._subscriptions:
            if sub.matches(app, path):
                return sub
        return None

    def _find_active(self, sub_id: int) -> Subscription | None:
        for sub in self._subscriptions:
            if sub.id == sub_id and sub.active:
                return sub
        return None

    def _route(self, event: InboundEvent) -> bool:
        """Apply one event. True if a message was delivered."""
        if event.kind == EventKind.POKE:
            if not event.ok:
                _log.warning("poke %d on channel %s failed: %s", event.id, self._uid, event.error)
            return False
        sub = self._find_active(event.id)
        if sub is None:
            _log.debug("discarding %s event for unknown id %d", event.kind.value, event.id)
            return False
        if event.kind == EventKind.DIFF:
            if event.payload is None:
                return False
            sub.deliver(event.payload)
            return True
        if event.kind == EventKind.QUIT:
            _log.info("ship ended subscription %d (%s%s)", sub.id, sub.app, sub.path)
            sub.unsubscribe()
        elif event.kind == EventKind.SUBSCRIBE and not event.ok:
            _log.warning(
                "ship refused subscription %d (%s%s): %s",
                sub.id,
                sub.app,
                sub.path,
                event.error,
            )
            sub.unsubscribe()
        return False

    # -- Private --------------------------------------------------------------

    def _check_open(self) -> None:
        if self._deleted:
            raise ChannelClosedError(f"channel {self._uid} was deleted")

    def _allocate_id(self) -> int:
        current = self._next_id
        self._next_id += 1
        return current

    def _stamp(self, actions: list[dict[str, Any]], *, with_ack: bool = True) -> list[Action]:
        """Prefix any pending ack and assign ids in batch order."""
        self._check_open()
        pending: list[dict[str, Any]] = []
        if with_ack and self._unacked is not None:
            pending.append({"action": "ack", "event-id": self._unacked})
        return [{"id": self._allocate_id(), **a} for a in pending + actions]

    async def _send(self, actions: list[dict[str, Any]]) -> httpx.Response:
        return await self._post(self._stamp(actions))

    async def _post(self, batch: list[Action]) -> httpx.Response:
        resp = await self._session.send_action_batch(self._uid, batch)
        if not self._established:
            self._established = True
            self._reader.mark_ready()
        for action in batch:
            if action["action"] == "ack" and action["event-id"] == self._unacked:
                self._unacked = None
        return resp


async def create_channel(
    session: ShipSession,
    *,
    uid: str | None = None,
    log: EventLog | None = None,
    max_queue: int = 0,
) -> Channel:
    """Create a channel on ``session`` and start its event stream reader.

    No action is sent: the ship sees the channel with the first poke or
    subscription, and the reader opens the stream right after that.
    """
    channel = Channel(session, uid, log=log, max_queue=max_queue)
    channel.start()
    return channel
