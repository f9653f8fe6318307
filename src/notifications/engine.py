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
Scheduling Engine Module

Derives the live timer set from persisted preferences. Every reconcile
clears the whole registry and rebuilds it from scratch, so a stale or
duplicate timer can never survive a data change.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

import pytz

from .dispatch import NotificationDispatcher
from .errors import NotificationError, PreferenceStoreError
from .models import UserPreference
from .registry import TimerHandle, TimerKey, TimerRegistry
from .slots import EARLY_WARNING, NotificationSlot, get_slot, sort_slot_ids
from .store import PreferenceStore
from .time_convert import convert_rule, resolve_timezone
from .timers import TimerCallback, schedule_cron

logger = logging.getLogger("slotbell.notifications.engine")

# (rule, timezone, callback) -> started timer handle
TimerFactory = Callable[[str, str, TimerCallback], TimerHandle]


@dataclass
class ReconcileIssue:
    """A problem met while reconciling one user, slot or phase."""

    phase: str  # load, save, user, timezone, slot, schedule
    message: str
    user_id: Optional[str] = None
    slot_id: Optional[str] = None


@dataclass
class ReconcileResult:
    """Outcome counts of a reconciliation."""

    scheduled: int = 0  # live timers
    paused: int = 0  # timers created in a stopped state
    skipped: int = 0  # unknown slot references
    failed: int = 0  # timers that could not be created
    users: int = 0  # users with at least one selected slot
    issues: list[ReconcileIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not any(
            issue.phase in ("load", "save", "user") for issue in self.issues
        )


class SchedulingEngine:
    """Owns reconciliation between preferences and the timer registry."""

    def __init__(
        self,
        store: PreferenceStore,
        registry: TimerRegistry,
        dispatcher: NotificationDispatcher,
        reference_timezone: str,
        timer_factory: TimerFactory = schedule_cron,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the scheduling engine.

        Args:
            store: Preference store
            registry: Timer registry owned by this engine
            dispatcher: Fire callback target
            reference_timezone: Timezone the slot catalog is defined in
            timer_factory: Creates a started timer from (rule, timezone, callback)
            now: Clock returning an aware datetime (for tests)
        """
        self.store = store
        self.registry = registry
        self.dispatcher = dispatcher
        self.reference_timezone = reference_timezone
        self._timer_factory = timer_factory
        self._now = now or (lambda: datetime.now(pytz.UTC))
        self._lock = asyncio.Lock()

    def reference_date(self) -> date:
        """Today in the reference timezone."""
        return self._now().astimezone(pytz.timezone(self.reference_timezone)).date()

    def rule_for(self, slot: NotificationSlot, timezone: str, reference_date: date) -> str:
        """
        Early-warning rule for a slot, expressed in the user's timezone.

        The warning instant is fixed in the reference timezone; the rule is
        the same instant read on the user's wall clock for ``reference_date``.
        """
        warning = slot.warning_time
        return convert_rule(
            warning.hour, warning.minute, self.reference_timezone, timezone, reference_date
        )

    async def reconcile(self) -> ReconcileResult:
        """
        Clear every timer and rebuild from the stored preferences.

        Never raises: problems are logged and reported in the result. One
        user's bad record never blocks the others.
        """
        async with self._lock:
            self.registry.clear_all()
            result = ReconcileResult()

            async with self.store.lock:
                try:
                    prefs = await self.store.load()
                except PreferenceStoreError as e:
                    logger.error(f"Reconcile aborted, could not load preferences: {e}")
                    result.issues.append(ReconcileIssue(phase="load", message=str(e)))
                    return result

                reference_date = self.reference_date()

                for user_id, pref in prefs.items():
                    if not pref.selected_slots:
                        continue
                    result.users += 1
                    try:
                        self._schedule_user(user_id, pref, reference_date, result)
                    except Exception as e:
                        logger.error(f"Skipping user {user_id} during reconcile: {e}", exc_info=True)
                        self.registry.clear_user(user_id)
                        pref.active_timer_ids = []
                        result.issues.append(ReconcileIssue("user", str(e), user_id=user_id))

                try:
                    await self.store.save(prefs)
                except PreferenceStoreError as e:
                    logger.error(f"Reconcile could not save preferences: {e}")
                    result.issues.append(ReconcileIssue(phase="save", message=str(e)))

        logger.info(
            f"Reconciled {result.users} user(s): {result.scheduled} scheduled, "
            f"{result.paused} paused, {result.skipped} skipped, {result.failed} failed"
        )
        return result

    def _schedule_user(
        self,
        user_id: str,
        pref: UserPreference,
        reference_date: date,
        result: ReconcileResult,
    ) -> None:
        """Register one early-warning timer per selected slot of a user."""
        pref.active_timer_ids = []

        timezone = resolve_timezone(pref.timezone, self.reference_timezone)
        if timezone != pref.timezone:
            message = f"Invalid timezone '{pref.timezone}', using {self.reference_timezone}"
            logger.warning(f"User {user_id}: {message}")
            result.issues.append(ReconcileIssue("timezone", message, user_id=user_id))

        for slot_id in sort_slot_ids(pref.selected_slots):
            key = TimerKey(user_id, slot_id, EARLY_WARNING)
            try:
                slot = get_slot(slot_id)
            except NotificationError as e:
                logger.warning(f"Skipping slot for user {user_id}: {e}")
                result.skipped += 1
                result.issues.append(
                    ReconcileIssue("slot", str(e), user_id=user_id, slot_id=slot_id)
                )
                continue

            try:
                handle = self._timer_factory(
                    self.rule_for(slot, timezone, reference_date),
                    timezone,
                    self._callback(user_id, slot_id),
                )
                self.registry.register(key, handle)
                if pref.paused:
                    self.registry.stop(key)
                    result.paused += 1
                else:
                    result.scheduled += 1
            except Exception as e:
                logger.error(
                    f"Failed to schedule {slot_id} for user {user_id}: {e}",
                    exc_info=True,
                )
                result.failed += 1
                result.issues.append(
                    ReconcileIssue("schedule", str(e), user_id=user_id, slot_id=slot_id)
                )
                continue

            pref.active_timer_ids.append(str(key))

    def _callback(self, user_id: str, slot_id: str) -> TimerCallback:
        async def fire() -> None:
            await self.dispatcher.fire(user_id, slot_id)

        return fire
