# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

from airlock.logging.decorator import Loggable, log_method
from airlock.logging.event_log import EventLog, read_log

__all__ = ["EventLog", "Loggable", "log_method", "read_log"]
