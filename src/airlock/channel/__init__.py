# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

from airlock.channel.channel import (
    Channel,
    ChannelClosedError,
    create_channel,
    new_channel_uid,
)
from airlock.channel.events import (
    EventKind,
    InboundEvent,
    SSEDecoder,
    SSEFrame,
    decode_event,
)
from airlock.channel.model import (
    Subscription,
    SubscriptionState,
    SubscriptionStateError,
)
from airlock.channel.reader import EventStreamReader

__all__ = [
    "Channel",
    "ChannelClosedError",
    "EventKind",
    "EventStreamReader",
    "InboundEvent",
    "SSEDecoder",
    "SSEFrame",
    "Subscription",
    "SubscriptionState",
    "SubscriptionStateError",
    "create_channel",
    "decode_event",
    "new_channel_uid",
]
