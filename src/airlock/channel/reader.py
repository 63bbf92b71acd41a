# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Event stream reader: background task feeding one channel's queue."""

from __future__ import annotations

import asyncio
import logging

from airlock.channel.events import InboundEvent, SSEDecoder, decode_event
from airlock.session.base import ShipSession, TransportError

_log = logging.getLogger(__name__)


class EventStreamReader:
    """Reads a channel's SSE stream into a FIFO queue.

    The task starts with the channel but only opens the stream once
    mark_ready() is called: the ship creates a channel on its first
    accepted action batch and refuses the GET before that. When the
    stream ends the reader stops; it never reconnects on its own.

    ``max_queue`` of 0 means unbounded. A bounded queue blocks the reader
    (and therefore the network read) until the channel drains it.
    """

    def __init__(
        self,
        session: ShipSession,
        channel_uid: str,
        *,
        max_queue: int = 0,
        last_event_id: int | None = None,
    ) -> None:
        self._session = session
        self._channel_uid = channel_uid
        self._queue: asyncio.Queue[InboundEvent] = asyncio.Queue(maxsize=max_queue)
        self._ready = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._resume_from = last_event_id
        self.last_event_id = last_event_id
        self.error: BaseException | None = None

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def closed(self) -> bool:
        """True once the task has finished, for whatever reason."""
        return self._task is not None and self._task.done()

    @property
    def pending(self) -> int:
        """Events queued and not yet taken by next()."""
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn the reader task. Needs a running event loop."""
        if self._task is not None:
            raise RuntimeError(f"reader for channel {self._channel_uid} already started")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"airlock-reader-{self._channel_uid}"
        )

    def mark_ready(self) -> None:
        """The channel exists on the ship; the stream may be opened."""
        self._ready.set()

    def next(self) -> InboundEvent | None:
        """Take the oldest queued event without waiting. None if empty."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    async def close(self) -> None:
        """Cancel the task and wait for it to finish. Never raises its outcome."""
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.wait([self._task])

    async def _run(self) -> None:
        await self._ready.wait()
        decoder = SSEDecoder()
        _log.debug("opening event stream for channel %s", self._channel_uid)
        try:
            async for line in self._session.open_event_stream(
                self._channel_uid, last_event_id=self._resume_from
            ):
                frame = decoder.feed(line)
                if frame is None:
                    continue
                event = decode_event(frame)
                if event is None:
                    continue
                if event.event_id is not None:
                    self.last_event_id = event.event_id
                await self._queue.put(event)
        except TransportError as exc:
            self.error = exc
            _log.warning("event stream for channel %s failed: %s", self._channel_uid, exc)
            return
        except Exception as exc:
            self.error = exc
            _log.exception("event stream for channel %s crashed", self._channel_uid)
            return
        _log.info("event stream for channel %s ended", self._channel_uid)
