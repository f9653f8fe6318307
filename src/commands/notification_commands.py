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
Notification Slash Commands

Discord commands for choosing notification slots, pausing, resuming,
stopping, setting a timezone, and admin restarts.
"""

import logging
from typing import Optional

import discord
import pytz
from discord import app_commands
from discord.ext import commands

from notifications import (
    LifecycleCoordinator,
    NotificationConfig,
    NotificationError,
    PreferenceManager,
)
from notifications.slots import get_slot, sort_slot_ids
from notifications.time_convert import convert_time, format_clock, resolve_timezone, today_in

from .views import ClearAllConfirmView, SlotSelectorView

logger = logging.getLogger("slotbell.commands.notify")

# Common timezones for autocomplete
COMMON_TIMEZONES = [
    "UTC",
    "Asia/Bangkok",
    "Asia/Ho_Chi_Minh",
    "Asia/Jakarta",
    "Asia/Manila",
    "Asia/Singapore",
    "Asia/Tokyo",
    "Asia/Seoul",
    "Asia/Kolkata",
    "Australia/Sydney",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Sao_Paulo",
]

GENERIC_FAILURE = "Something went wrong updating your notifications. Please try again later."


def build_selector_embed() -> discord.Embed:
    return discord.Embed(
        title="Notification Times",
        description="Select the times you want to be notified today",
        color=discord.Color.blurple(),
    )


class NotificationCommands(commands.Cog):
    """
    Slash commands for slot notifications.

    Commands:
    - /notify menu - Open the slot selector
    - /notify status - Show your notification settings
    - /notify pause - Pause your notifications
    - /notify resume - Resume your notifications
    - /notify stop - Clear your selection
    - /notify timezone - Set your timezone
    - /notify-admin restart - Rebuild every timer (owner only)
    - /notify-admin clear-all - Clear every user's selection (owner only)
    - !notifications - Post the shared selector in this channel
    """

    notify_group = app_commands.Group(
        name="notify",
        description="Manage your slot notifications",
    )
    admin_group = app_commands.Group(
        name="notify-admin",
        description="Administer slot notifications",
    )

    def __init__(
        self,
        bot: commands.Bot,
        manager: PreferenceManager,
        coordinator: LifecycleCoordinator,
        config: NotificationConfig,
    ):
        self.bot = bot
        self.manager = manager
        self.coordinator = coordinator
        self.config = config

    def selector_view(self) -> SlotSelectorView:
        return SlotSelectorView(self.manager, self.coordinator)

    async def post_selector(self, channel: discord.abc.Messageable) -> discord.Message:
        """Post the shared slot selector to a channel."""
        return await channel.send(embed=build_selector_embed(), view=self.selector_view())

    # =========================================================================
    # !notifications
    # =========================================================================

    @commands.command(name="notifications")
    async def notifications_prefix(self, ctx: commands.Context):
        """Manually post the notification selection message."""
        try:
            await self.post_selector(ctx.channel)
            await ctx.reply("Notification selection message sent!")
        except discord.HTTPException as e:
            logger.error(f"Error sending notification selector: {e}")
            await ctx.reply("Failed to send notification selector.")

    # =========================================================================
    # /notify menu
    # =========================================================================

    @notify_group.command(name="menu")
    async def menu(self, interaction: discord.Interaction):
        """Open the slot selector."""
        user_id = str(interaction.user.id)

        await interaction.response.send_message(
            content=f"<@{user_id}>",
            embed=build_selector_embed(),
            view=self.selector_view(),
        )
        message = await interaction.original_response()

        try:
            previous = await self.manager.set_prompt_ref(
                user_id, f"{message.channel.id}:{message.id}"
            )
        except NotificationError as e:
            logger.error(f"Failed to store prompt for {user_id}: {e}")
            return

        if previous:
            await self._retract_prompt(previous)

    async def _retract_prompt(self, ref: str) -> None:
        """Delete a previous prompt message; it may already be gone."""
        try:
            channel_id, message_id = (int(part) for part in ref.split(":"))
        except ValueError:
            logger.warning(f"Malformed prompt reference: {ref}")
            return

        channel = self.bot.get_channel(channel_id)
        if channel is None:
            return
        try:
            await channel.get_partial_message(message_id).delete()
        except (discord.NotFound, discord.Forbidden) as e:
            logger.debug(f"Could not retract prompt {ref}: {e}")

    # =========================================================================
    # /notify status
    # =========================================================================

    @notify_group.command(name="status")
    async def status(self, interaction: discord.Interaction):
        """Show your notification settings."""
        user_id = str(interaction.user.id)
        try:
            pref = await self.manager.get(user_id)
        except NotificationError as e:
            logger.error(f"Failed to load preferences for {user_id}: {e}")
            await interaction.response.send_message(GENERIC_FAILURE, ephemeral=True)
            return

        reference_tz = self.config.default_timezone
        reference_date = today_in(reference_tz)
        user_tz = resolve_timezone(pref.timezone, reference_tz)

        times = []
        for slot_id in sort_slot_ids(pref.selected_slots):
            try:
                slot = get_slot(slot_id)
            except NotificationError:
                continue
            hour, minute = convert_time(
                slot.hour, slot.minute, reference_tz, user_tz, reference_date
            )
            times.append(f"{format_clock(hour, minute)} ({slot.label} {reference_tz})")

        embed = discord.Embed(
            title="Your Notifications",
            color=discord.Color.orange() if pref.paused else discord.Color.green(),
        )
        embed.add_field(
            name="Times",
            value="\n".join(times) if times else "None selected",
            inline=False,
        )
        embed.add_field(name="Auto-apply", value="Yes" if pref.auto_apply else "No", inline=True)
        embed.add_field(name="Paused", value="Yes" if pref.paused else "No", inline=True)
        embed.add_field(name="Timezone", value=user_tz, inline=True)
        if pref.is_editing:
            embed.set_footer(text="You have unconfirmed changes in the selector")

        await interaction.response.send_message(embed=embed, ephemeral=True)

    # =========================================================================
    # /notify pause | resume | stop
    # =========================================================================

    @notify_group.command(name="pause")
    async def pause(self, interaction: discord.Interaction):
        """Pause your notifications without losing your selection."""
        user_id = str(interaction.user.id)
        try:
            changed = await self.coordinator.pause_user(user_id)
        except NotificationError as e:
            logger.error(f"Failed to pause {user_id}: {e}")
            await interaction.response.send_message(GENERIC_FAILURE, ephemeral=True)
            return

        await interaction.response.send_message(
            "Your notifications are paused. Use `/notify resume` to turn them back on."
            if changed
            else "Your notifications are already paused.",
            ephemeral=True,
        )

    @notify_group.command(name="resume")
    async def resume(self, interaction: discord.Interaction):
        """Resume paused notifications."""
        user_id = str(interaction.user.id)
        try:
            changed = await self.coordinator.resume_user(user_id)
        except NotificationError as e:
            logger.error(f"Failed to resume {user_id}: {e}")
            await interaction.response.send_message(GENERIC_FAILURE, ephemeral=True)
            return

        await interaction.response.send_message(
            "Your notifications are back on." if changed else "Your notifications were not paused.",
            ephemeral=True,
        )

    @notify_group.command(name="stop")
    async def stop(self, interaction: discord.Interaction):
        """Clear your selection and stop all notifications."""
        user_id = str(interaction.user.id)
        try:
            await self.coordinator.stop_user(user_id)
        except NotificationError as e:
            logger.error(f"Failed to stop {user_id}: {e}")
            await interaction.response.send_message(GENERIC_FAILURE, ephemeral=True)
            return

        await interaction.response.send_message(
            "All your notifications have been stopped and your selection cleared.",
            ephemeral=True,
        )

    # =========================================================================
    # /notify timezone
    # =========================================================================

    @notify_group.command(name="timezone")
    @app_commands.describe(timezone="Your timezone (e.g., America/New_York, Asia/Bangkok)")
    async def set_timezone(self, interaction: discord.Interaction, timezone: str):
        """Set your timezone for notifications."""
        user_id = str(interaction.user.id)
        try:
            await self.manager.set_timezone(user_id, timezone)
        except NotificationError as e:
            if e.phase == "timezone":
                await interaction.response.send_message(
                    f"Invalid timezone: `{timezone}`\n"
                    "Full list: https://en.wikipedia.org/wiki/List_of_tz_database_time_zones",
                    ephemeral=True,
                )
            else:
                logger.error(f"Failed to set timezone for {user_id}: {e}")
                await interaction.response.send_message(GENERIC_FAILURE, ephemeral=True)
            return

        self.coordinator.request_reconcile()
        await interaction.response.send_message(
            f"Your timezone has been set to **{timezone}**.",
            ephemeral=True,
        )

    @set_timezone.autocomplete("timezone")
    async def timezone_autocomplete(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> list[app_commands.Choice[str]]:
        """Autocomplete for timezone parameter."""
        current_lower = current.lower()
        matches = [tz for tz in COMMON_TIMEZONES if current_lower in tz.lower()]

        # If no matches from common, search all pytz timezones
        if not matches and len(current) >= 2:
            matches = [tz for tz in pytz.common_timezones if current_lower in tz.lower()]

        return [app_commands.Choice(name=tz, value=tz) for tz in matches[:25]]

    # =========================================================================
    # /notify-admin
    # =========================================================================

    def _is_owner(self, interaction: discord.Interaction) -> bool:
        return self.config.owner_id is not None and interaction.user.id == self.config.owner_id

    @admin_group.command(name="restart")
    async def restart(self, interaction: discord.Interaction):
        """Clear and rebuild every notification timer."""
        if not self._is_owner(interaction):
            await interaction.response.send_message("This command is for the bot admin.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)
        result = await self.coordinator.restart_all()

        if result.ok:
            await interaction.followup.send(
                f"Notifications restarted: {result.scheduled} active, {result.paused} paused "
                f"across {result.users} user(s).",
                ephemeral=True,
            )
        else:
            await interaction.followup.send(
                f"Restart finished with {len(result.issues)} problem(s); check the logs.",
                ephemeral=True,
            )

    @admin_group.command(name="clear-all")
    async def clear_all(self, interaction: discord.Interaction):
        """Clear every user's notification selection."""
        if not self._is_owner(interaction):
            await interaction.response.send_message("This command is for the bot admin.", ephemeral=True)
            return

        async def on_confirm(confirm_interaction: discord.Interaction) -> None:
            await confirm_interaction.response.edit_message(content="Clearing...", view=None)
            try:
                result = await self.coordinator.clear_everyone()
            except NotificationError as e:
                logger.error(f"Failed to clear all preferences: {e}")
                await confirm_interaction.edit_original_response(content=GENERIC_FAILURE)
                return
            await confirm_interaction.edit_original_response(
                content="Every user's notifications have been cleared."
                if result.ok
                else "Cleared, but the restart reported problems; check the logs."
            )

        view = ClearAllConfirmView(
            interaction.user.id,
            on_confirm,
            timeout=self.config.confirm_timeout_seconds,
        )
        await interaction.response.send_message(
            "This clears **every** user's notification times. Are you sure?",
            view=view,
            ephemeral=True,
        )
        view.message = await interaction.original_response()
