# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Append-only JSONL log of channel traffic."""

import json
import os
from pathlib import Path
from types import TracebackType
from typing import Any

from airlock import now_iso
from airlock.persistence import full_write


class EventLog:
    """Per-channel structured event log.

    One JSON object per line. Context keys (channel uid, ship) are merged
    into every entry but never override ``ts`` or ``event``. With
    ``durable=True`` each entry is fsynced before log() returns.
    """

    def __init__(
        self,
        path: Path,
        context: dict[str, str] | None = None,
        *,
        durable: bool = False,
    ) -> None:
        self._path = path
        self._context = context or {}
        self._durable = durable
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def open(self) -> None:
        """Open the log file for appending, creating parent dirs."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._fd = os.open(
            self._path,
            os.O_WRONLY | os.O_CREAT | os.O_APPEND,
            0o644,
        )

    def __enter__(self) -> "EventLog":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def log(self, event: str, data: dict[str, Any] | None = None) -> None:
        """Append one event."""
        if self._fd is None:
            msg = "EventLog not open"
            raise RuntimeError(msg)
        full_write(self._fd, self._serialize(event, data))
        if self._durable:
            os.fsync(self._fd)

    def close(self) -> None:
        """Close the file descriptor. Safe to call twice."""
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def _serialize(self, event: str, data: dict[str, Any] | None) -> bytes:
        entry: dict[str, Any] = {
            **self._context,
            "ts": now_iso(),
            "event": event,
        }
        if data is not None:
            entry["data"] = data
        return (json.dumps(entry, separators=(",", ":"), default=str) + "\n").encode()


def read_log(path: Path) -> list[dict[str, Any]]:
    """Load all entries from a log file.

    Missing file reads as empty. A torn trailing line (process killed
    mid-append) is ignored; corruption anywhere else raises.
    """
    if not path.exists():
        return []
    lines = path.read_bytes().split(b"\n")
    entries: list[dict[str, Any]] = []
    for i, line in enumerate(lines):
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            if i == len(lines) - 1:
                break
            raise
    return entries


__all__ = ["EventLog", "read_log"]
