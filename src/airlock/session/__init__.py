# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

from airlock.session.base import Action, LoginError, ShipSession, TransportError
from airlock.session.http import HttpShipSession

__all__ = [
    "Action",
    "HttpShipSession",
    "LoginError",
    "ShipSession",
    "TransportError",
]
