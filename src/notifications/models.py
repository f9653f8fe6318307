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
User Preference Model

Per-user notification preferences as stored by the preference store.
The persisted shape uses the camelCase keys of the existing JSON file:
times, pendingTimes, autoApply, paused, timezone, scheduledJobs,
lastSetupMessageId.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .slots import sort_slot_ids


@dataclass
class UserPreference:
    """Notification preferences for a single user."""

    timezone: str
    selected_slots: set[str] = field(default_factory=set)
    pending_slots: Optional[set[str]] = None  # staged edit, None when not editing
    auto_apply: bool = False
    paused: bool = False
    active_timer_ids: list[str] = field(default_factory=list)  # rebuilt on reconcile
    last_prompt_message_ref: Optional[str] = None

    @property
    def is_editing(self) -> bool:
        """Whether the user has staged slots that are not committed yet."""
        return self.pending_slots is not None

    def clear(self) -> None:
        """Reset to an empty selection without removing the record."""
        self.selected_slots = set()
        self.pending_slots = None
        self.auto_apply = False
        self.paused = False
        self.active_timer_ids = []

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted record shape."""
        return {
            "times": sort_slot_ids(self.selected_slots),
            "pendingTimes": (
                sort_slot_ids(self.pending_slots)
                if self.pending_slots is not None
                else None
            ),
            "autoApply": self.auto_apply,
            "paused": self.paused,
            "timezone": self.timezone,
            "scheduledJobs": list(self.active_timer_ids),
            "lastSetupMessageId": self.last_prompt_message_ref,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_timezone: str) -> "UserPreference":
        """
        Build a preference from a persisted record.

        Missing fields take their defaults, so records written by older
        versions (only ``times`` and ``autoApply``) still load.

        Args:
            data: Persisted record
            default_timezone: Timezone for records that do not name one

        Raises:
            ValueError: If the record is not an object or a slot list is not a list
        """
        if not isinstance(data, dict):
            raise ValueError(f"Preference record must be an object, got {type(data).__name__}")

        timezone = data.get("timezone")
        pending = data.get("pendingTimes")
        return cls(
            timezone=timezone if isinstance(timezone, str) and timezone else default_timezone,
            selected_slots=_slot_ids(data.get("times")),
            pending_slots=_slot_ids(pending) if pending is not None else None,
            auto_apply=bool(data.get("autoApply", False)),
            paused=bool(data.get("paused", False)),
            active_timer_ids=list(data.get("scheduledJobs") or []),
            last_prompt_message_ref=data.get("lastSetupMessageId"),
        )


def _slot_ids(value: Any) -> set[str]:
    if value is None:
        return set()
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Slot list must be a list, got {type(value).__name__}")
    return {str(slot_id) for slot_id in value}
