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
Lifecycle Coordinator Module

Serializes reconcile requests coming from user actions, runs the daily
reset and handles administrative full restarts.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .engine import ReconcileResult, SchedulingEngine, TimerFactory
from .errors import PreferenceStoreError
from .manager import PreferenceManager
from .registry import TimerHandle
from .timers import schedule_cron

logger = logging.getLogger("slotbell.notifications.lifecycle")


class LifecycleCoordinator:
    """
    Coalesces reconcile requests and owns the daily reset timer.

    A burst of reconcile requests results in one reconcile after a short
    quiet interval, plus at most one more if requests arrive while that
    reconcile is running. Never zero, never one per request.
    """

    def __init__(
        self,
        engine: SchedulingEngine,
        manager: PreferenceManager,
        daily_rule: str = "0 8 * * *",
        debounce_seconds: float = 0.1,
        restart_grace_seconds: float = 0.2,
        on_daily: Optional[Callable[[], Awaitable[None]]] = None,
        timer_factory: TimerFactory = schedule_cron,
    ):
        """
        Initialize the coordinator.

        Args:
            engine: Scheduling engine to drive
            manager: Preference manager for user operations
            daily_rule: CRON rule for the daily reset, in the reference timezone
            debounce_seconds: Quiet interval before a coalesced reconcile
            restart_grace_seconds: Wait between clearing and rebuilding on restart
            on_daily: Called after each daily reset (posts the daily selector)
            timer_factory: Creates the daily timer
        """
        self.engine = engine
        self.manager = manager
        self.registry = engine.registry
        self.daily_rule = daily_rule
        self.debounce_seconds = debounce_seconds
        self.restart_grace_seconds = restart_grace_seconds
        self.on_daily = on_daily
        self._timer_factory = timer_factory

        self._pending: Optional[asyncio.Task] = None
        self._deadline = 0.0
        self._running = False
        self._rerun = False
        self._daily_timer: Optional[TimerHandle] = None

    # =========================================================================
    # Reconcile coordination
    # =========================================================================

    def request_reconcile(self) -> asyncio.Task:
        """
        Ask for a reconcile soon.

        Returns:
            The task that will run (or is running) the coalesced reconcile
        """
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.debounce_seconds

        if self._pending is None or self._pending.done():
            self._pending = loop.create_task(self._run_coalesced())
        elif self._running:
            self._rerun = True

        return self._pending

    async def wait_idle(self) -> Optional[ReconcileResult]:
        """Wait for any pending coalesced reconcile to finish."""
        if self._pending is None:
            return None
        return await self._pending

    async def _run_coalesced(self) -> ReconcileResult:
        loop = asyncio.get_running_loop()
        while True:
            # Each new request pushes the deadline out
            delay = self._deadline - loop.time()
            while delay > 0:
                await asyncio.sleep(delay)
                delay = self._deadline - loop.time()

            self._rerun = False
            self._running = True
            try:
                result = await self.engine.reconcile()
            finally:
                self._running = False

            if not self._rerun:
                return result
            logger.debug("Reconcile requested while running, running once more")

    async def restart_all(self) -> ReconcileResult:
        """
        Clear every timer, let cancellations settle, then rebuild.

        Bypasses the debounce.
        """
        logger.info("Restarting all notification timers")
        self.registry.clear_all()
        await asyncio.sleep(self.restart_grace_seconds)
        result = await self.engine.reconcile()

        if result.ok:
            logger.info("Notification restart complete")
        else:
            logger.error(f"Notification restart finished with {len(result.issues)} issue(s)")
        return result

    # =========================================================================
    # Daily reset
    # =========================================================================

    async def apply_daily_reset(self) -> bool:
        """
        Clear selections of users without auto-apply and reschedule.

        Returns:
            True if a reconcile was requested
        """
        try:
            changed = await self.manager.apply_daily_reset()
        except PreferenceStoreError as e:
            logger.error(f"Daily reset failed: {e}")
            return False

        if changed:
            self.request_reconcile()
        return changed

    async def _run_daily(self) -> None:
        await self.apply_daily_reset()
        if self.on_daily is not None:
            try:
                await self.on_daily()
            except Exception as e:
                logger.error(f"Error sending daily selector: {e}", exc_info=True)

    # =========================================================================
    # User operations
    # =========================================================================

    async def pause_user(self, user_id: str) -> bool:
        """Pause a user's notifications; their timers stay registered but stopped."""
        changed = await self.manager.set_paused(user_id, True)
        for key in self.registry.keys_for_user(user_id):
            self.registry.stop(key)
        self.request_reconcile()
        return changed

    async def resume_user(self, user_id: str) -> bool:
        """Resume a paused user by restarting their registered timers."""
        changed = await self.manager.set_paused(user_id, False)
        for key in self.registry.keys_for_user(user_id):
            self.registry.start(key)
        self.request_reconcile()
        return changed

    async def stop_user(self, user_id: str) -> None:
        """Clear a user's selection and remove all of their timers."""
        await self.manager.stop(user_id)
        result = self.registry.clear_user(user_id)
        logger.info(f"Removed {result.cleared} timer(s) for user {user_id}")

    async def clear_everyone(self) -> ReconcileResult:
        """Admin reset: empty every record, then restart."""
        await self.manager.clear_all()
        return await self.restart_all()

    # =========================================================================
    # Startup / shutdown
    # =========================================================================

    async def start(self) -> ReconcileResult:
        """Build timers from stored preferences and start the daily reset timer."""
        result = await self.engine.reconcile()
        if self._daily_timer is None:
            self._daily_timer = self._timer_factory(
                self.daily_rule, self.engine.reference_timezone, self._run_daily
            )
            logger.info(
                f"Daily reset scheduled ({self.daily_rule}, {self.engine.reference_timezone})"
            )
        return result

    async def shutdown(self) -> None:
        """Cancel the daily timer, any pending reconcile and every slot timer."""
        if self._daily_timer is not None:
            self._daily_timer.cancel()
            self._daily_timer = None
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self.registry.clear_all()
        logger.info("Notification lifecycle shut down")
