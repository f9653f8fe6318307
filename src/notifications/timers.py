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
Recurring Timer Module

Daily CRON-rule timers running on the asyncio event loop. A timer can be
stopped and started again, or cancelled for good.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

import pytz
from croniter import croniter

logger = logging.getLogger("slotbell.notifications.timers")

TimerCallback = Callable[[], Awaitable[object]]


class CronTimer:
    """
    A recurring timer driven by a 5-field CRON rule in a given timezone.

    Each fire runs the callback as its own task, so a slow or failing
    delivery never delays or kills the timer loop.
    """

    def __init__(self, rule: str, timezone: str, callback: TimerCallback, name: Optional[str] = None):
        """
        Initialize the timer (not started).

        Args:
            rule: CRON expression (minute hour day month weekday)
            timezone: IANA timezone the rule is evaluated in
            callback: Coroutine function invoked on every fire
            name: Label used in logs

        Raises:
            ValueError: If the rule is not a valid CRON expression
            pytz.UnknownTimeZoneError: If the timezone is unknown
        """
        if not croniter.is_valid(rule):
            raise ValueError(f"Invalid CRON expression: '{rule}'")

        self.rule = rule
        self.timezone = timezone
        self.name = name or rule
        self._tz = pytz.timezone(timezone)
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._fires: set[asyncio.Task] = set()
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def next_fire(self, after: Optional[datetime] = None) -> datetime:
        """
        Calculate the next fire time.

        Args:
            after: Aware datetime to start from (defaults to now)

        Returns:
            Next fire time in UTC
        """
        base = datetime.now(self._tz) if after is None else after.astimezone(self._tz)
        next_local = croniter(self.rule, base).get_next(datetime)

        if next_local.tzinfo is None:
            next_local = self._tz.localize(next_local)

        return next_local.astimezone(pytz.UTC)

    def start(self) -> None:
        """Start (or resume) the timer loop. Must be called from the event loop."""
        if self._cancelled:
            raise RuntimeError(f"Timer {self.name} was cancelled and cannot be restarted")
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Pause the timer; it can be started again."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def cancel(self) -> None:
        """Stop the timer permanently."""
        self.stop()
        self._cancelled = True

    async def _run(self) -> None:
        next_at = self.next_fire()
        while True:
            delay = (next_at - datetime.now(pytz.UTC)).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)

            task = asyncio.create_task(self._fire())
            self._fires.add(task)
            task.add_done_callback(self._fires.discard)

            # Compute from the scheduled time so an early wake never double-fires
            next_at = self.next_fire(after=next_at)

    async def _fire(self) -> None:
        try:
            await self._callback()
        except Exception as e:
            logger.error(f"Timer {self.name} callback failed: {e}", exc_info=True)


def schedule_cron(rule: str, timezone: str, callback: TimerCallback, name: Optional[str] = None) -> CronTimer:
    """Create a CronTimer and start it."""
    timer = CronTimer(rule, timezone, callback, name=name)
    timer.start()
    return timer
