# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Graph Store data model and ``@da`` time conversion."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

# `@da` of ~1970.1.1.
DA_UNIX_EPOCH = 170141184475152167957503069145530368000
# One second in `@da` units (2^64).
DA_SECOND = 18446744073709551616


def unix_ms_to_da(unix_ms: int) -> int:
    """Convert UNIX milliseconds to an Urbit ``@da`` atom."""
    return DA_UNIX_EPOCH + (unix_ms * DA_SECOND) // 1000


def current_da() -> int:
    return unix_ms_to_da(time.time_ns() // 1_000_000)


def _with_sig(ship: str) -> str:
    return ship if ship.startswith("~") else f"~{ship}"


def same_ship(a: str, b: str) -> bool:
    """Compare ship names ignoring the leading ``~``."""
    return a.lstrip("~") == b.lstrip("~")


@dataclass
class Node:
    """One post in a graph, with its children."""

    index: str
    author: str
    time_sent: int  # UNIX milliseconds.
    contents: list[dict[str, Any]] = field(default_factory=list)
    hash: str | None = None
    signatures: list[Any] = field(default_factory=list)
    children: list[Node] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated ``text`` content blocks. Other block kinds are skipped."""
        return "".join(c["text"] for c in self.contents if "text" in c)

    def post_json(self) -> dict[str, Any]:
        return {
            "author": _with_sig(self.author),
            "index": self.index,
            "time-sent": self.time_sent,
            "contents": self.contents,
            "hash": self.hash,
            "signatures": self.signatures,
        }

    def to_json(self) -> dict[str, Any]:
        """``{index: {post, children}}`` as add-nodes expects it."""
        children: dict[str, Any] | None = None
        if self.children:
            children = {}
            for child in self.children:
                children.update(child.to_json())
        return {self.index: {"post": self.post_json(), "children": children}}

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> Node | None:
        """Parse a ``{post, children}`` object. None for deleted posts."""
        post = obj.get("post")
        if not isinstance(post, dict):
            return None
        children: list[Node] = []
        for child_obj in (obj.get("children") or {}).values():
            child = cls.from_json(child_obj)
            if child is not None:
                children.append(child)
        return cls(
            index=post["index"],
            author=post["author"].lstrip("~"),
            time_sent=int(post["time-sent"]),
            contents=list(post.get("contents") or []),
            hash=post.get("hash"),
            signatures=list(post.get("signatures") or []),
            children=children,
        )


@dataclass
class Graph:
    """Top-level nodes of a graph, in whatever order the ship sent them."""

    nodes: list[Node] = field(default_factory=list)

    @classmethod
    def from_json(cls, graph: dict[str, Any]) -> Graph:
        nodes = [n for n in (Node.from_json(v) for v in graph.values()) if n is not None]
        return cls(nodes)

    @classmethod
    def from_scry(cls, body: dict[str, Any]) -> Graph:
        """Parse the ``/graph/<ship>/<name>`` scry response."""
        try:
            graph = body["graph-update"]["add-graph"]["graph"]
        except (KeyError, TypeError) as exc:
            raise ValueError("not an add-graph update") from exc
        return cls.from_json(graph)

    def sorted_by_time(self) -> list[Node]:
        return sorted(self.nodes, key=lambda n: n.time_sent)


def added_nodes(update: Any, ship: str, name: str) -> list[Node]:
    """Nodes from an ``add-nodes`` graph update for resource ship/name.

    Anything else (other resources, other update kinds) yields [].
    """
    if not isinstance(update, dict):
        return []
    add = (update.get("graph-update") or {}).get("add-nodes")
    if not isinstance(add, dict):
        return []
    resource = add.get("resource") or {}
    if resource.get("name") != name or not same_ship(str(resource.get("ship", "")), ship):
        return []
    nodes = (Node.from_json(v) for v in (add.get("nodes") or {}).values())
    return [n for n in nodes if n is not None]
