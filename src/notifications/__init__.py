# slotbell - Discord Slot Notification Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Slot Notifications Package

Per-user scheduling of early-warning notifications for the sixteen daily
slots, with timezone conversion and pause/auto-apply lifecycle.
"""

from .config import NotificationConfig
from .dispatch import DiscordChannelDelivery, DispatchOutcome, NotificationDispatcher
from .engine import ReconcileIssue, ReconcileResult, SchedulingEngine
from .errors import (
    InvalidTimezoneError,
    NotificationError,
    PreferenceStoreError,
    UnknownSlotError,
)
from .lifecycle import LifecycleCoordinator
from .manager import PreferenceManager
from .models import UserPreference
from .registry import TimerKey, TimerRegistry
from .slots import SLOTS, NotificationSlot, get_slot
from .store import JsonPreferenceStore, PostgresPreferenceStore, PreferenceStore
from .time_convert import convert_time, validate_timezone
from .timers import CronTimer, schedule_cron

__all__ = [
    "NotificationConfig",
    "DiscordChannelDelivery",
    "DispatchOutcome",
    "NotificationDispatcher",
    "ReconcileIssue",
    "ReconcileResult",
    "SchedulingEngine",
    "InvalidTimezoneError",
    "NotificationError",
    "PreferenceStoreError",
    "UnknownSlotError",
    "LifecycleCoordinator",
    "PreferenceManager",
    "UserPreference",
    "TimerKey",
    "TimerRegistry",
    "SLOTS",
    "NotificationSlot",
    "get_slot",
    "JsonPreferenceStore",
    "PostgresPreferenceStore",
    "PreferenceStore",
    "convert_time",
    "validate_timezone",
    "CronTimer",
    "schedule_cron",
]
