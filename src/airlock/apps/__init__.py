# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

from airlock.apps.chat import AuthoredMessage, Chat, dm_name
from airlock.apps.graph import (
    Graph,
    Node,
    added_nodes,
    current_da,
    unix_ms_to_da,
)
from airlock.apps.graph_store import GraphStore, GraphStoreError

__all__ = [
    "AuthoredMessage",
    "Chat",
    "Graph",
    "GraphStore",
    "GraphStoreError",
    "Node",
    "added_nodes",
    "current_da",
    "dm_name",
    "unix_ms_to_da",
]
