# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Async client for Urbit ship channels."""

from datetime import UTC, datetime


def now_iso() -> str:
    return datetime.now(UTC).isoformat()
