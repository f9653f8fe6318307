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
Timer Registry Module

Process-owned collection of live timer handles keyed by
(user id, slot id, kind). Holds no business data.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Protocol

from .slots import EARLY_WARNING

logger = logging.getLogger("slotbell.notifications.registry")


class TimerHandle(Protocol):
    """Anything the registry can manage."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def cancel(self) -> None: ...


class TimerKey(NamedTuple):
    """Composite registry key."""

    user_id: str
    slot_id: str
    kind: str = EARLY_WARNING

    def __str__(self) -> str:
        return f"{self.user_id}:{self.slot_id}:{self.kind}"

    @classmethod
    def parse(cls, value: str) -> "TimerKey":
        """Parse the string form produced by ``str(key)``."""
        # Slot ids contain a colon ("18:00")
        user_id, hour, minute, kind = value.rsplit(":", 3)
        return cls(user_id, f"{hour}:{minute}", kind)


@dataclass
class ClearResult:
    """Outcome of clearing the registry."""

    cleared: int = 0
    failed: int = 0


class TimerRegistry:
    """
    Owns every live notification timer.

    At most one handle exists per key: registering over an existing key
    cancels the previous handle first.
    """

    def __init__(self):
        self._timers: dict[TimerKey, TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, key: TimerKey) -> bool:
        return key in self._timers

    def get(self, key: TimerKey) -> Optional[TimerHandle]:
        return self._timers.get(key)

    def keys(self) -> list[TimerKey]:
        return list(self._timers)

    def keys_for_user(self, user_id: str) -> list[TimerKey]:
        return [key for key in self._timers if key.user_id == user_id]

    def register(self, key: TimerKey, handle: TimerHandle) -> None:
        """Register a handle, replacing (and cancelling) any existing one."""
        existing = self._timers.pop(key, None)
        if existing is not None:
            logger.warning(f"Replacing existing timer {key}")
            self._cancel_handle(key, existing)
        self._timers[key] = handle

    def clear_all(self) -> ClearResult:
        """
        Cancel and remove every timer.

        Each cancellation is attempted independently; a handle that fails
        is logged and still removed.
        """
        result = ClearResult()
        timers, self._timers = self._timers, {}

        for key, handle in timers.items():
            if self._cancel_handle(key, handle):
                result.cleared += 1
            else:
                result.failed += 1

        logger.info(f"Cleared {result.cleared} timer(s), {result.failed} failed to cancel")
        return result

    def clear_user(self, user_id: str) -> ClearResult:
        """Cancel and remove every timer belonging to one user."""
        result = ClearResult()
        for key in self.keys_for_user(user_id):
            if self._cancel_handle(key, self._timers.pop(key)):
                result.cleared += 1
            else:
                result.failed += 1
        return result

    def stop(self, key: TimerKey) -> bool:
        """Pause a timer without removing it. Returns False if unknown."""
        handle = self._timers.get(key)
        if handle is None:
            return False
        handle.stop()
        return True

    def start(self, key: TimerKey) -> bool:
        """Resume a paused timer. Returns False if unknown."""
        handle = self._timers.get(key)
        if handle is None:
            return False
        handle.start()
        return True

    def cancel(self, key: TimerKey) -> bool:
        """Cancel and remove a timer. Returns False if unknown."""
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        self._cancel_handle(key, handle)
        return True

    def _cancel_handle(self, key: TimerKey, handle: TimerHandle) -> bool:
        try:
            handle.cancel()
            return True
        except Exception as e:
            logger.warning(f"Failed to cancel timer {key}: {e}")
            return False
