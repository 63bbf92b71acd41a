# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Small file write primitives shared by the event log and config."""

import os
from pathlib import Path


def full_write(fd: int, data: bytes) -> None:
    """Write all bytes, retrying on short writes."""
    while data:
        n = os.write(fd, data)
        data = data[n:]


def atomic_write(path: Path, data: bytes, *, overwrite: bool = True) -> bool:
    """Write data to path via temp + fsync + rename.

    With ``overwrite=False`` an existing target is left alone and False is
    returned. Returns True when the file was written.
    """
    if not overwrite and path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
    try:
        full_write(fd, data)
        os.fsync(fd)
    finally:
        os.close(fd)
    os.replace(str(tmp), str(path))
    return True
