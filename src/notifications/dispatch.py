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
Notification Dispatch Module

Runs when a slot timer fires: re-reads the user's preferences, builds the
early-warning message in the user's timezone and posts it to the shared
broadcast channel. Delivery is at-most-once; failures are classified and
logged, never retried or raised.
"""

import enum
import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

import discord
import pytz

from .errors import PreferenceStoreError, UnknownSlotError
from .slots import WARNING_OFFSET_MINUTES, NotificationSlot, get_slot
from .store import PreferenceStore
from .time_convert import convert_time, format_clock, resolve_timezone, timezone_abbreviation

logger = logging.getLogger("slotbell.notifications.dispatch")

# Discord JSON error code for "Missing Access" (bot lost access to the channel)
MISSING_ACCESS = 50001


class Delivery(Protocol):
    """Outbound "send text to a destination" capability."""

    async def send(self, destination_id: str, text: str) -> object: ...


class DispatchOutcome(enum.Enum):
    DELIVERED = "delivered"
    PAUSED = "paused"
    UNKNOWN_USER = "unknown_user"
    UNKNOWN_SLOT = "unknown_slot"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    ACCESS_REVOKED = "access_revoked"
    FAILED = "failed"


class DiscordChannelDelivery:
    """Delivers text to a Discord channel through the bot connection."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    async def send(self, destination_id: str, text: str) -> discord.Message:
        channel_id = int(destination_id)
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return await channel.send(
            text,
            allowed_mentions=discord.AllowedMentions(users=True, roles=False, everyone=False),
        )


class NotificationDispatcher:
    """Fire callback for slot timers."""

    def __init__(
        self,
        store: PreferenceStore,
        delivery: Delivery,
        channel_id: str,
        reference_timezone: str,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            store: Preference store (read fresh on every fire)
            delivery: Outbound delivery capability
            channel_id: Shared broadcast destination
            reference_timezone: Timezone the slot catalog is defined in
            now: Clock returning an aware datetime (for tests)
        """
        self.store = store
        self.delivery = delivery
        self.channel_id = channel_id
        self.reference_timezone = reference_timezone
        self._now = now or (lambda: datetime.now(pytz.UTC))

    async def fire(self, user_id: str, slot_id: str) -> DispatchOutcome:
        """
        Deliver the early warning for one user and slot.

        Never raises; the outcome is returned and logged.
        """
        try:
            prefs = await self.store.load()
        except PreferenceStoreError as e:
            logger.error(f"Skipping notification {user_id}/{slot_id}: {e}")
            return DispatchOutcome.FAILED

        pref = prefs.get(user_id)
        if pref is None:
            logger.warning(f"Timer fired for unknown user {user_id} (slot {slot_id})")
            return DispatchOutcome.UNKNOWN_USER

        # The flag may have changed since the timer was created
        if pref.paused:
            logger.debug(f"User {user_id} is paused, not notifying for {slot_id}")
            return DispatchOutcome.PAUSED

        try:
            slot = get_slot(slot_id)
        except UnknownSlotError as e:
            logger.warning(f"Cannot notify user {user_id}: {e}")
            return DispatchOutcome.UNKNOWN_SLOT

        timezone = resolve_timezone(pref.timezone, self.reference_timezone)
        if timezone != pref.timezone:
            logger.warning(
                f"User {user_id} has invalid timezone '{pref.timezone}', "
                f"using {self.reference_timezone}"
            )

        text = self.build_message(user_id, slot, timezone)
        return await self._deliver(user_id, slot_id, text)

    def build_message(self, user_id: str, slot: NotificationSlot, timezone: str) -> str:
        """
        Compose the early-warning text.

        Includes the slot time converted into the user's timezone, the user's
        current local time and the timezone name.
        """
        now = self._now()
        reference_date = now.astimezone(pytz.timezone(self.reference_timezone)).date()
        hour, minute = convert_time(
            slot.hour, slot.minute, self.reference_timezone, timezone, reference_date
        )
        local_now = now.astimezone(pytz.timezone(timezone))

        spawn_str = format_clock(hour, minute)
        now_str = format_clock(local_now.hour, local_now.minute)
        tz_short = timezone_abbreviation(timezone, now)

        return (
            f"<@{user_id}> Spawn at **{spawn_str}** in {WARNING_OFFSET_MINUTES} minutes! "
            f"Your local time: {now_str} {tz_short} ({timezone})"
        )

    async def _deliver(self, user_id: str, slot_id: str, text: str) -> DispatchOutcome:
        try:
            await self.delivery.send(self.channel_id, text)
        except discord.NotFound:
            logger.error(
                f"Notification channel {self.channel_id} not found "
                f"(user {user_id}, slot {slot_id})"
            )
            return DispatchOutcome.NOT_FOUND
        except discord.Forbidden as e:
            if e.code == MISSING_ACCESS:
                logger.error(
                    f"Access to channel {self.channel_id} revoked "
                    f"(user {user_id}, slot {slot_id})"
                )
                return DispatchOutcome.ACCESS_REVOKED
            logger.error(
                f"Missing permission to post in channel {self.channel_id} "
                f"(user {user_id}, slot {slot_id}): {e}"
            )
            return DispatchOutcome.PERMISSION_DENIED
        except Exception as e:
            logger.error(
                f"Error sending notification to user {user_id} for slot {slot_id}: {e}",
                exc_info=True,
            )
            return DispatchOutcome.FAILED

        logger.info(f"Delivered {slot_id} notification to user {user_id}")
        return DispatchOutcome.DELIVERED
