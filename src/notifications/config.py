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
Notification System Configuration

Deployment settings for the slot notification engine.
Values are read from environment variables (a .env file is loaded by the bot).
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import pytz

logger = logging.getLogger("slotbell.notifications.config")

# Value that switches the whole bot off at deploy time
DISABLED = "DISABLED"

# Reference timezone the slot catalog is defined in
REFERENCE_TIMEZONE = "Asia/Bangkok"


@dataclass
class NotificationConfig:
    """Configuration for the notification bot and scheduling engine."""

    bot_token: Optional[str] = None
    channel_id: Optional[str] = None

    # Reference timezone for canonical slot times and for users without one
    default_timezone: str = REFERENCE_TIMEZONE

    # Persistence
    preferences_path: str = "data/user_preferences.json"
    database_url: Optional[str] = None

    # Daily reset + selector post, wall clock in the reference timezone
    daily_reset_hour: int = 8
    daily_reset_minute: int = 0

    # Lifecycle timings (seconds)
    debounce_seconds: float = 0.1
    restart_grace_seconds: float = 0.2
    confirm_timeout_seconds: float = 30.0

    # Admin
    owner_id: Optional[int] = None

    @property
    def is_disabled(self) -> bool:
        """True when a kill switch is set or a required value is missing."""
        for value in (self.bot_token, self.channel_id):
            if not value or value.strip().upper() == DISABLED:
                return True
        return False

    @property
    def daily_reset_rule(self) -> str:
        """Cron rule for the daily reset in the reference timezone."""
        return f"{self.daily_reset_minute} {self.daily_reset_hour} * * *"

    @classmethod
    def from_env(cls) -> "NotificationConfig":
        """Create config from environment variables with defaults."""
        default_timezone = os.getenv("DEFAULT_TIMEZONE", REFERENCE_TIMEZONE)
        if default_timezone not in pytz.all_timezones_set:
            logger.warning(
                f"Invalid DEFAULT_TIMEZONE '{default_timezone}', "
                f"falling back to {REFERENCE_TIMEZONE}"
            )
            default_timezone = REFERENCE_TIMEZONE

        reset_hour, reset_minute = _parse_clock(os.getenv("DAILY_RESET_TIME", "08:00"))

        owner_id = os.getenv("OWNER_ID")

        return cls(
            bot_token=os.getenv("BOT_TOKEN"),
            channel_id=os.getenv("CHANNEL_ID"),
            default_timezone=default_timezone,
            preferences_path=os.getenv("PREFERENCES_PATH", "data/user_preferences.json"),
            database_url=os.getenv("DATABASE_URL") or None,
            daily_reset_hour=reset_hour,
            daily_reset_minute=reset_minute,
            debounce_seconds=float(os.getenv("RECONCILE_DEBOUNCE_SECONDS", "0.1")),
            restart_grace_seconds=float(os.getenv("RESTART_GRACE_SECONDS", "0.2")),
            confirm_timeout_seconds=float(os.getenv("CONFIRM_TIMEOUT_SECONDS", "30")),
            owner_id=int(owner_id) if owner_id else None,
        )


def _parse_clock(value: str) -> tuple[int, int]:
    """Parse 'HH:MM', falling back to 08:00 on bad input."""
    try:
        hour_str, minute_str = value.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        logger.warning(f"Invalid DAILY_RESET_TIME '{value}', using 08:00")
        return 8, 0

    if not (0 <= hour < 24 and 0 <= minute < 60):
        logger.warning(f"DAILY_RESET_TIME '{value}' out of range, using 08:00")
        return 8, 0
    return hour, minute
