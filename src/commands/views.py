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
Discord UI Components for Notification Commands

Provides the slot selector (select menu + auto-apply buttons) and the
confirmation dialog for clearing everyone's preferences.
"""

import logging
from typing import Awaitable, Callable, Optional

import discord

from notifications import LifecycleCoordinator, NotificationError, PreferenceManager
from notifications.slots import SLOTS, get_slot, sort_slot_ids

logger = logging.getLogger("slotbell.commands.views")

SELECT_ID = "slotbell:slots"
AUTO_APPLY_YES_ID = "slotbell:auto_apply_yes"
AUTO_APPLY_NO_ID = "slotbell:auto_apply_no"


def _labels(slot_ids) -> str:
    return ", ".join(get_slot(s).label for s in sort_slot_ids(slot_ids)) or "none"


class SlotSelectorView(discord.ui.View):
    """
    Slot picker shared by the daily selector and the /notify menu prompt.

    Features:
    - Select menu with all sixteen slots (0..16 values); picking stages them
    - "Auto-apply for next day" / "Just for today" buttons commit the staged
      slots and request a reschedule
    - Persistent (no timeout, fixed custom ids) so it keeps working after a
      restart; every interaction edits the clicking user's own preferences
    """

    def __init__(self, manager: PreferenceManager, coordinator: LifecycleCoordinator):
        super().__init__(timeout=None)
        self.manager = manager
        self.coordinator = coordinator

    @discord.ui.select(
        custom_id=SELECT_ID,
        placeholder="Select notification times",
        min_values=0,
        max_values=len(SLOTS),
        options=[
            discord.SelectOption(
                label=slot.label,
                value=slot.slot_id,
                description=f"Get notified at {slot.label}",
            )
            for slot in SLOTS
        ],
    )
    async def slot_select(self, interaction: discord.Interaction, select: discord.ui.Select):
        """Stage the chosen slots."""
        user_id = str(interaction.user.id)
        try:
            staged = await self.manager.stage_slots(user_id, select.values)
        except NotificationError as e:
            logger.error(f"Failed to stage slots for {user_id}: {e}")
            await interaction.response.send_message(
                "Something went wrong saving your selection. Please try again.",
                ephemeral=True,
            )
            return

        await interaction.response.send_message(
            f"Selected: **{_labels(staged)}**\n"
            "Press **Auto-apply for next day** or **Just for today** to confirm.",
            ephemeral=True,
        )

    @discord.ui.button(
        label="Auto-apply for next day",
        style=discord.ButtonStyle.success,
        custom_id=AUTO_APPLY_YES_ID,
    )
    async def auto_apply_yes(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._commit(interaction, auto_apply=True)

    @discord.ui.button(
        label="Just for today",
        style=discord.ButtonStyle.secondary,
        custom_id=AUTO_APPLY_NO_ID,
    )
    async def auto_apply_no(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._commit(interaction, auto_apply=False)

    async def _commit(self, interaction: discord.Interaction, auto_apply: bool):
        user_id = str(interaction.user.id)
        try:
            pref = await self.manager.commit(user_id, auto_apply=auto_apply)
        except NotificationError as e:
            logger.error(f"Failed to commit slots for {user_id}: {e}")
            await interaction.response.send_message(
                "Something went wrong updating your notifications. Please try again.",
                ephemeral=True,
            )
            return

        self.coordinator.request_reconcile()

        when = (
            "Your settings will automatically be applied each day."
            if auto_apply
            else "Your settings will only apply for today."
        )
        await interaction.response.send_message(
            f"You'll be notified at: **{_labels(pref.selected_slots)}**\n{when}",
            ephemeral=True,
        )


class ClearAllConfirmView(discord.ui.View):
    """
    Confirmation dialog for clearing every user's notifications.

    Features:
    - Confirm (danger red) and Cancel buttons
    - User verification
    - Auto-cancels after the timeout
    """

    def __init__(
        self,
        user_id: int,
        on_confirm: Callable[[discord.Interaction], Awaitable[None]],
        timeout: float = 30.0,
    ):
        """
        Initialize the confirmation view.

        Args:
            user_id: Discord user ID who can interact with this view
            on_confirm: Async callback when confirmed
            timeout: View timeout in seconds
        """
        super().__init__(timeout=timeout)
        self.user_id = user_id
        self.on_confirm = on_confirm
        self.message: Optional[discord.Message] = None

    async def _verify_user(self, interaction: discord.Interaction) -> bool:
        """Verify the interaction is from the original user."""
        if interaction.user.id != self.user_id:
            await interaction.response.send_message(
                "This confirmation belongs to someone else.",
                ephemeral=True,
            )
            return False
        return True

    @discord.ui.button(label="Clear everyone", style=discord.ButtonStyle.danger)
    async def confirm_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        """Confirm the bulk clear."""
        if not await self._verify_user(interaction):
            return

        self.stop()
        await self.on_confirm(interaction)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
    async def cancel_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        """Cancel the bulk clear."""
        if not await self._verify_user(interaction):
            return

        self.stop()
        await interaction.response.edit_message(content="Clear cancelled.", view=None)

    async def on_timeout(self):
        """Disable buttons and report the auto-cancel."""
        self.confirm_button.disabled = True
        self.cancel_button.disabled = True
        if self.message is not None:
            try:
                await self.message.edit(content="Clear timed out and was cancelled.", view=self)
            except discord.HTTPException as e:
                logger.debug(f"Could not edit timed-out confirmation: {e}")
