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

"""Shared fakes for notification engine tests."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from notifications.dispatch import NotificationDispatcher
from notifications.engine import SchedulingEngine
from notifications.errors import PreferenceStoreError
from notifications.models import UserPreference
from notifications.registry import TimerRegistry
from notifications.store import PreferenceStore

# Winter day: America/New_York is UTC-5
FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=pytz.UTC)


class FakeTimer:
    """Timer handle that records its state instead of running."""

    def __init__(self, rule, timezone, callback):
        self.rule = rule
        self.timezone = timezone
        self.callback = callback
        self.running = True
        self.cancelled = False

    def start(self):
        if self.cancelled:
            raise RuntimeError("cancelled")
        self.running = True

    def stop(self):
        self.running = False

    def cancel(self):
        self.running = False
        self.cancelled = True

    async def fire(self):
        return await self.callback()


class FakeTimerFactory:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, rule, timezone, callback):
        timer = FakeTimer(rule, timezone, callback)
        self.timers.append(timer)
        return timer


class MemoryStore(PreferenceStore):
    """Store keeping serialized records in memory, like a real backend would."""

    def __init__(self, default_timezone: str = "UTC"):
        super().__init__(default_timezone)
        self.records: dict[str, dict] = {}
        self.fail_load = False
        self.fail_save = False
        self.save_count = 0

    async def load(self):
        if self.fail_load:
            raise PreferenceStoreError("disk on fire", phase="load")
        return {
            user_id: UserPreference.from_dict(record, self.default_timezone)
            for user_id, record in self.records.items()
        }

    async def save(self, prefs):
        if self.fail_save:
            raise PreferenceStoreError("disk full", phase="save")
        self.save_count += 1
        self.records = {user_id: pref.to_dict() for user_id, pref in prefs.items()}

    def put(self, user_id: str, **fields) -> None:
        pref = UserPreference(timezone=fields.pop("timezone", self.default_timezone))
        for name, value in fields.items():
            setattr(pref, name, value)
        self.records[user_id] = pref.to_dict()

    def get(self, user_id: str) -> Optional[UserPreference]:
        record = self.records.get(user_id)
        return UserPreference.from_dict(record, self.default_timezone) if record else None


class FakeDelivery:
    def __init__(self, error: Optional[Exception] = None):
        self.sent: list[tuple[str, str]] = []
        self.error = error

    async def send(self, destination_id, text):
        if self.error is not None:
            raise self.error
        self.sent.append((destination_id, text))
        return len(self.sent)


@pytest.fixture
def store():
    return MemoryStore(default_timezone="UTC")


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def registry():
    return TimerRegistry()


@pytest.fixture
def dispatcher(store, delivery):
    return NotificationDispatcher(
        store=store,
        delivery=delivery,
        channel_id="999",
        reference_timezone="UTC",
        now=lambda: FIXED_NOW,
    )


@pytest.fixture
def engine(store, registry, dispatcher, timer_factory):
    return SchedulingEngine(
        store=store,
        registry=registry,
        dispatcher=dispatcher,
        reference_timezone="UTC",
        timer_factory=timer_factory,
        now=lambda: FIXED_NOW,
    )
