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

"""Error types raised by the notification engine."""

from typing import Optional


class NotificationError(Exception):
    """
    Base error for the notification system.

    Carries enough context for a command handler to build a reply.
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        slot_id: Optional[str] = None,
        phase: Optional[str] = None,
    ):
        super().__init__(message)
        self.user_id = user_id
        self.slot_id = slot_id
        self.phase = phase


class PreferenceStoreError(NotificationError):
    """Raised when preferences cannot be read or written."""

    pass


class UnknownSlotError(NotificationError):
    """Raised when a slot id is not in the catalog."""

    def __init__(self, slot_id: str, user_id: Optional[str] = None):
        super().__init__(
            f"Unknown notification slot: '{slot_id}'",
            user_id=user_id,
            slot_id=slot_id,
            phase="slot",
        )


class InvalidTimezoneError(NotificationError):
    """Raised when a timezone name is not a known IANA zone."""

    def __init__(self, timezone: str, user_id: Optional[str] = None):
        super().__init__(
            f"Invalid timezone: '{timezone}'",
            user_id=user_id,
            phase="timezone",
        )
        self.timezone = timezone
