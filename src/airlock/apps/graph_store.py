# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Graph Store helpers built on Channel.poke and the session's scry."""

from __future__ import annotations

import time
from typing import Any, Protocol

import httpx

from airlock.apps.graph import Graph, Node, current_da
from airlock.channel.channel import Channel
from airlock.session.base import ShipSession, TransportError

_PUSH_HOOK = "graph-push-hook"
_UPDATE_MARK = "graph-update"


class GraphStoreError(Exception):
    """A Graph Store request failed for ``resource``."""

    def __init__(self, message: str, resource: str) -> None:
        super().__init__(f"{message}: {resource}")
        self.resource = resource


class ScrySession(ShipSession, Protocol):
    async def scry(self, app: str, path: str, mark: str = "json") -> httpx.Response: ...


def _resource(ship: str, name: str) -> dict[str, str]:
    return {"ship": ship, "name": name}


class GraphStore:
    """Reads and writes graphs through one channel.

    Holds no channel state of its own; every write is a single poke.
    """

    def __init__(self, channel: Channel) -> None:
        self._channel = channel

    def new_node(self, contents: list[dict[str, Any]]) -> Node:
        """A node authored by this ship, indexed by the current ``@da``."""
        return Node(
            index=f"/{current_da()}",
            author=self._channel.session.ship,
            time_sent=time.time_ns() // 1_000_000,
            contents=contents,
        )

    async def add_node(self, ship: str, name: str, node: Node) -> None:
        await self._update(
            {"add-nodes": {"resource": _resource(ship, name), "nodes": node.to_json()}},
            "failed to add nodes",
            f"{ship}/{name}",
        )

    async def remove_nodes(self, ship: str, name: str, indices: list[str]) -> None:
        await self._update(
            {"remove-nodes": {"resource": _resource(ship, name), "indices": indices}},
            "failed to remove nodes",
            f"{ship}/{name}",
        )

    async def remove_graph(self, ship: str, name: str) -> None:
        await self._update(
            {"remove-graph": {"resource": _resource(ship, name)}},
            "failed to remove graph",
            f"{ship}/{name}",
        )

    async def get_graph(self, ship: str, name: str) -> Graph:
        """Fetch a whole graph via scry."""
        resource = f"{ship}/{name}"
        body = await self._scry_json(f"/graph/{resource}", "failed to get graph", resource)
        try:
            return Graph.from_scry(body)
        except (ValueError, KeyError, TypeError) as exc:
            raise GraphStoreError("malformed graph", resource) from exc

    async def archive_graph(self, ship: str, name: str) -> str:
        """Archive a graph. Returns the ship's raw response body."""
        resource = f"{ship}/{name}"
        resp = await self._scry(f"/archive/{resource}", "failed to archive graph", resource)
        return resp.text

    async def get_keys(self) -> list[dict[str, str]]:
        """All resources the store knows about."""
        body = await self._scry_json("/keys", "failed to fetch keys", "keys")
        try:
            return list(body["graph-update"]["keys"])
        except (KeyError, TypeError) as exc:
            raise GraphStoreError("malformed keys response", "keys") from exc

    async def _update(self, update: dict[str, Any], what: str, resource: str) -> None:
        try:
            await self._channel.poke(_PUSH_HOOK, _UPDATE_MARK, update)
        except TransportError as exc:
            raise GraphStoreError(what, resource) from exc

    async def _scry(self, path: str, what: str, resource: str) -> httpx.Response:
        session: ScrySession = self._channel.session  # type: ignore[assignment]
        try:
            return await session.scry("graph-store", path)
        except TransportError as exc:
            raise GraphStoreError(what, resource) from exc

    async def _scry_json(self, path: str, what: str, resource: str) -> Any:
        resp = await self._scry(path, what, resource)
        try:
            return resp.json()
        except ValueError as exc:
            raise GraphStoreError(what, resource) from exc
