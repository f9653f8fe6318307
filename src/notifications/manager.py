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
Preference Manager Module

User-facing mutations of notification preferences. Every operation is a
load-mutate-save sequence run under the store lock, so concurrent edits
from different users never overwrite each other.
"""

import logging
from typing import Callable, Iterable, Optional, TypeVar

from .errors import InvalidTimezoneError, UnknownSlotError
from .models import UserPreference
from .slots import is_valid_slot
from .store import PreferenceStore
from .time_convert import validate_timezone

logger = logging.getLogger("slotbell.notifications.manager")

T = TypeVar("T")


class PreferenceManager:
    """
    Manages per-user notification preferences.

    Records are created lazily on first interaction with default values.
    """

    def __init__(self, store: PreferenceStore):
        """
        Initialize the preference manager.

        Args:
            store: Preference store backend
        """
        self.store = store

    async def get(self, user_id: str) -> UserPreference:
        """
        Get a user's preferences (defaults if the user has none yet).

        Does not create a record.
        """
        prefs = await self.store.load()
        return prefs.get(user_id) or self.store.new_preference()

    async def update(self, user_id: str, mutate: Callable[[UserPreference], T]) -> T:
        """
        Apply a mutation to one user's record and persist it.

        Args:
            user_id: Discord user ID
            mutate: Function applied to the record; its return value is returned

        Raises:
            PreferenceStoreError: If loading or saving fails
        """
        async with self.store.lock:
            prefs = await self.store.load()
            pref = prefs.get(user_id)
            if pref is None:
                pref = self.store.new_preference()
                prefs[user_id] = pref
            result = mutate(pref)
            await self.store.save(prefs)
            return result

    async def stage_slots(self, user_id: str, slot_ids: Iterable[str]) -> set[str]:
        """
        Stage a slot selection for later commit.

        Raises:
            UnknownSlotError: If any slot id is not in the catalog
        """
        staged = set(slot_ids)
        for slot_id in staged:
            if not is_valid_slot(slot_id):
                raise UnknownSlotError(slot_id, user_id=user_id)

        def mutate(pref: UserPreference) -> set[str]:
            pref.pending_slots = staged
            return staged

        await self.update(user_id, mutate)
        logger.info(f"Staged {len(staged)} slot(s) for user {user_id}")
        return staged

    async def commit(self, user_id: str, auto_apply: Optional[bool] = None) -> UserPreference:
        """
        Commit staged slots and optionally set auto-apply.

        Without staged slots only the auto-apply flag changes.
        """

        def mutate(pref: UserPreference) -> UserPreference:
            if pref.pending_slots is not None:
                pref.selected_slots = pref.pending_slots
                pref.pending_slots = None
            if auto_apply is not None:
                pref.auto_apply = auto_apply
            return pref

        pref = await self.update(user_id, mutate)
        logger.info(
            f"Committed {len(pref.selected_slots)} slot(s) for user {user_id} "
            f"(auto_apply={pref.auto_apply})"
        )
        return pref

    async def set_auto_apply(self, user_id: str, auto_apply: bool) -> None:
        def mutate(pref: UserPreference) -> None:
            pref.auto_apply = auto_apply

        await self.update(user_id, mutate)

    async def set_paused(self, user_id: str, paused: bool) -> bool:
        """
        Set the pause flag.

        Returns:
            True if the flag changed
        """

        def mutate(pref: UserPreference) -> bool:
            changed = pref.paused != paused
            pref.paused = paused
            return changed

        changed = await self.update(user_id, mutate)
        if changed:
            logger.info(f"{'Paused' if paused else 'Resumed'} notifications for user {user_id}")
        return changed

    async def stop(self, user_id: str) -> None:
        """Clear selection, auto-apply and pause flag for a user."""
        await self.update(user_id, lambda pref: pref.clear())
        logger.info(f"Stopped notifications for user {user_id}")

    async def set_timezone(self, user_id: str, timezone: str) -> None:
        """
        Set a user's timezone.

        Raises:
            InvalidTimezoneError: If the timezone is not a known IANA zone
        """
        if not validate_timezone(timezone):
            raise InvalidTimezoneError(timezone, user_id=user_id)

        def mutate(pref: UserPreference) -> None:
            pref.timezone = timezone

        await self.update(user_id, mutate)
        logger.info(f"Set timezone for user {user_id}: {timezone}")

    async def set_prompt_ref(self, user_id: str, ref: Optional[str]) -> Optional[str]:
        """
        Remember the latest interactive prompt shown to a user.

        Returns:
            The previous prompt reference, if any
        """

        def mutate(pref: UserPreference) -> Optional[str]:
            previous = pref.last_prompt_message_ref
            pref.last_prompt_message_ref = ref
            return previous

        return await self.update(user_id, mutate)

    async def clear_all(self) -> int:
        """
        Reset every user's record to empty fields (records are kept).

        Returns:
            Number of records reset
        """
        async with self.store.lock:
            prefs = await self.store.load()
            for pref in prefs.values():
                pref.clear()
            await self.store.save(prefs)

        logger.info(f"Cleared preferences for {len(prefs)} user(s)")
        return len(prefs)

    async def apply_daily_reset(self) -> bool:
        """
        Clear the selection of every user without auto-apply.

        The pause flag is preserved.

        Returns:
            True if timers need rebuilding (a selection was cleared, or an
            auto-apply user still holds slots)
        """
        async with self.store.lock:
            prefs = await self.store.load()
            cleared = 0
            kept = 0

            for pref in prefs.values():
                if not pref.selected_slots:
                    continue
                if pref.auto_apply:
                    kept += 1
                else:
                    pref.selected_slots = set()
                    pref.active_timer_ids = []
                    cleared += 1

            if cleared:
                await self.store.save(prefs)

        logger.info(f"Daily reset: cleared {cleared} selection(s), kept {kept} auto-apply")
        return bool(cleared or kept)
