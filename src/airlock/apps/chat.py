# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Chat and DM messaging on top of Graph Store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

from airlock.apps.graph import Node, added_nodes
from airlock.apps.graph_store import GraphStore
from airlock.channel.channel import Channel, create_channel

_log = logging.getLogger(__name__)

UPDATES_APP = "graph-store"
UPDATES_PATH = "/updates"


def dm_name(ship: str) -> str:
    """Resource name of the DM graph with ``ship``."""
    return f"dm--{ship.lstrip('~')}"


@dataclass(frozen=True)
class AuthoredMessage:
    """A chat post: who, when, what."""

    author: str
    time_sent: int  # UNIX milliseconds.
    index: str
    contents: list[dict[str, Any]] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(c["text"] for c in self.contents if "text" in c)

    @classmethod
    def from_node(cls, node: Node) -> AuthoredMessage:
        return cls(
            author=node.author,
            time_sent=node.time_sent,
            index=node.index,
            contents=list(node.contents),
        )


class Chat:
    """Send, export and watch messages of one chat or DM graph."""

    def __init__(self, channel: Channel) -> None:
        self._channel = channel
        self._store = GraphStore(channel)

    async def send_message(
        self,
        ship: str,
        name: str,
        contents: str | list[dict[str, Any]],
    ) -> str:
        """Post a message. Plain strings become one text block.

        Returns the index of the new node.
        """
        if isinstance(contents, str):
            contents = [{"text": contents}]
        node = self._store.new_node(contents)
        await self._store.add_node(ship, name, node)
        return node.index

    async def export_messages(self, ship: str, name: str) -> list[AuthoredMessage]:
        """All non-empty messages of the graph, oldest first."""
        graph = await self._store.get_graph(ship, name)
        return [
            AuthoredMessage.from_node(node)
            for node in graph.sorted_by_time()
            if node.contents
        ]

    async def watch(
        self,
        ship: str,
        name: str,
        *,
        interval: float = 0.5,
    ) -> AsyncGenerator[AuthoredMessage, None]:
        """Yield messages posted to ship/name from now on.

        Uses a dedicated channel so other consumers of this one keep their
        own subscriptions. Stops when the stream closes or the ship ends
        the subscription; the watch channel is deleted on exit.
        """
        watcher = await create_channel(self._channel.session)
        async with watcher:
            await watcher.create_new_subscription(UPDATES_APP, UPDATES_PATH)
            while True:
                watcher.parse_event_messages()
                sub = watcher.find_subscription(UPDATES_APP, UPDATES_PATH)
                if sub is None:
                    return
                while (update := sub.pop_message()) is not None:
                    for node in added_nodes(update, ship, name):
                        yield AuthoredMessage.from_node(node)
                if not sub.active:
                    _log.info("graph-store updates subscription ended for %s/%s", ship, name)
                    return
                if watcher.stream_closed:
                    return
                await watcher.ack()
                await asyncio.sleep(interval)
