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
Notification Slot Catalog

The sixteen fixed daily time slots, 90 minutes apart, defined in the
reference timezone. Each slot carries an early-warning trigger that fires
five minutes before the slot.
"""

from dataclasses import dataclass
from datetime import time

from .errors import UnknownSlotError

# Early warning lead time before each slot
WARNING_OFFSET_MINUTES = 5

# Only notification kind currently implemented
EARLY_WARNING = "early-warning"


@dataclass(frozen=True)
class NotificationSlot:
    """One of the fixed daily notification time points."""

    slot_id: str  # 24-hour "HH:MM", also the stored value
    label: str  # display label, e.g. "6:00 PM"
    hour: int
    minute: int

    @property
    def canonical_time(self) -> time:
        """Slot time of day in the reference timezone."""
        return time(self.hour, self.minute)

    @property
    def warning_time(self) -> time:
        """Early warning time of day in the reference timezone."""
        total = (self.hour * 60 + self.minute - WARNING_OFFSET_MINUTES) % (24 * 60)
        return time(total // 60, total % 60)

    @property
    def recurrence_rule(self) -> str:
        """Warning time as a daily CRON rule (minute hour day month weekday)."""
        warning = self.warning_time
        return f"{warning.minute} {warning.hour} * * *"


def _slot(slot_id: str, label: str) -> NotificationSlot:
    hour, minute = map(int, slot_id.split(":"))
    return NotificationSlot(slot_id=slot_id, label=label, hour=hour, minute=minute)


# Display order matches the daily selector menu
SLOTS: tuple[NotificationSlot, ...] = (
    _slot("10:30", "10:30 AM"),
    _slot("12:00", "12:00 PM"),
    _slot("13:30", "1:30 PM"),
    _slot("15:00", "3:00 PM"),
    _slot("16:30", "4:30 PM"),
    _slot("18:00", "6:00 PM"),
    _slot("19:30", "7:30 PM"),
    _slot("21:00", "9:00 PM"),
    _slot("22:30", "10:30 PM"),
    _slot("00:00", "12:00 AM"),
    _slot("01:30", "1:30 AM"),
    _slot("03:00", "3:00 AM"),
    _slot("04:30", "4:30 AM"),
    _slot("06:00", "6:00 AM"),
    _slot("07:30", "7:30 AM"),
    _slot("09:00", "9:00 AM"),
)

_SLOTS_BY_ID = {slot.slot_id: slot for slot in SLOTS}
_SLOT_ORDER = {slot.slot_id: index for index, slot in enumerate(SLOTS)}


def get_slot(slot_id: str) -> NotificationSlot:
    """
    Look up a slot by id.

    Raises:
        UnknownSlotError: If the id is not in the catalog
    """
    try:
        return _SLOTS_BY_ID[slot_id]
    except KeyError:
        raise UnknownSlotError(slot_id) from None


def is_valid_slot(slot_id: str) -> bool:
    return slot_id in _SLOTS_BY_ID


def sort_slot_ids(slot_ids) -> list[str]:
    """Sort slot ids in catalog order; unknown ids go last, alphabetically."""
    return sorted(slot_ids, key=lambda s: (_SLOT_ORDER.get(s, len(SLOTS)), s))
