# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""Subscription data model and state machine."""

import enum
from collections import deque
from dataclasses import dataclass, field
from typing import Any


class SubscriptionState(enum.Enum):
    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"


# Valid state transitions.
_TRANSITIONS: dict[SubscriptionState, frozenset[SubscriptionState]] = {
    SubscriptionState.ACTIVE: frozenset({SubscriptionState.UNSUBSCRIBED}),
    SubscriptionState.UNSUBSCRIBED: frozenset(),
}


class SubscriptionStateError(Exception):
    """Raised on invalid subscription state transition."""


@dataclass
class Subscription:
    """One (app, path) watch on a channel.

    ``id`` is the outbound action id that created the watch; the ship tags
    every event for this stream with it. Messages are decoded JSON values
    in arrival order.
    """

    channel_uid: str
    id: int
    app: str
    path: str
    state: SubscriptionState = SubscriptionState.ACTIVE
    _messages: deque[Any] = field(default_factory=deque, init=False, repr=False)

    @property
    def active(self) -> bool:
        return self.state == SubscriptionState.ACTIVE

    @property
    def pending(self) -> int:
        """Number of delivered, not yet popped messages."""
        return len(self._messages)

    def matches(self, app: str, path: str) -> bool:
        return self.app == app and self.path == path

    def transition(self, target: SubscriptionState) -> None:
        """Transition to a new state. Raises SubscriptionStateError if invalid."""
        allowed = _TRANSITIONS[self.state]
        if target not in allowed:
            msg = f"{self.state.value} → {target.value}"
            raise SubscriptionStateError(msg)
        self.state = target

    def unsubscribe(self) -> None:
        """ACTIVE → UNSUBSCRIBED. Terminal."""
        self.transition(SubscriptionState.UNSUBSCRIBED)

    def deliver(self, payload: Any) -> None:
        """Append a message. Only the owning Channel calls this."""
        self._messages.append(payload)

    def pop_message(self) -> Any | None:
        """Remove and return the oldest message, or None if there is none."""
        if not self._messages:
            return None
        return self._messages.popleft()
