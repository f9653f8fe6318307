"""
slotbell Discord Bot

Maintains the Discord connection, wires the notification engine to the
broadcast channel and posts the daily slot selector.
"""

import asyncio
import logging
from typing import Optional

import asyncpg
import discord
from discord.ext import commands
from dotenv import load_dotenv

from commands.notification_commands import NotificationCommands, build_selector_embed
from notifications import (
    DiscordChannelDelivery,
    JsonPreferenceStore,
    LifecycleCoordinator,
    NotificationConfig,
    NotificationDispatcher,
    PostgresPreferenceStore,
    PreferenceManager,
    PreferenceStore,
    SchedulingEngine,
    TimerRegistry,
)

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("slotbell")


class NotificationBot(commands.Bot):
    """Discord bot delivering slot notifications to one broadcast channel."""

    def __init__(self, config: NotificationConfig):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.messages = True
        intents.members = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.store: Optional[PreferenceStore] = None
        self.coordinator: Optional[LifecycleCoordinator] = None
        self.notification_cog: Optional[NotificationCommands] = None
        self._started_notifications = False

    async def setup_hook(self):
        """Called when the bot is starting up."""
        logger.info(f"Setup: CHANNEL_ID={self.config.channel_id}")
        logger.info(f"Setup: DEFAULT_TIMEZONE={self.config.default_timezone}")
        logger.info(f"Setup: DATABASE_URL={'set' if self.config.database_url else 'missing'}")

        self.store = await self._create_store()

        registry = TimerRegistry()
        dispatcher = NotificationDispatcher(
            store=self.store,
            delivery=DiscordChannelDelivery(self),
            channel_id=self.config.channel_id,
            reference_timezone=self.config.default_timezone,
        )
        engine = SchedulingEngine(
            store=self.store,
            registry=registry,
            dispatcher=dispatcher,
            reference_timezone=self.config.default_timezone,
        )
        manager = PreferenceManager(self.store)
        self.coordinator = LifecycleCoordinator(
            engine=engine,
            manager=manager,
            daily_rule=self.config.daily_reset_rule,
            debounce_seconds=self.config.debounce_seconds,
            restart_grace_seconds=self.config.restart_grace_seconds,
            on_daily=self.send_daily_selector,
        )

        self.notification_cog = NotificationCommands(self, manager, self.coordinator, self.config)
        await self.add_cog(self.notification_cog)

        # Persistent selector: buttons on old selector messages keep working
        self.add_view(self.notification_cog.selector_view())

        synced = await self.tree.sync()
        logger.info(f"Synced {len(synced)} application command(s)")

    async def _create_store(self) -> PreferenceStore:
        """Use PostgreSQL when DATABASE_URL is set, otherwise the JSON file."""
        if self.config.database_url:
            try:
                db_pool = await asyncpg.create_pool(self.config.database_url)
                logger.info("Using PostgreSQL preference store")
                return PostgresPreferenceStore(db_pool, self.config.default_timezone)
            except (asyncpg.PostgresError, OSError) as e:
                logger.error(f"Failed to connect to database: {e}", exc_info=True)
                logger.warning("Falling back to JSON preference store")

        logger.info(f"Using JSON preference store at {self.config.preferences_path}")
        return JsonPreferenceStore(self.config.preferences_path, self.config.default_timezone)

    async def on_ready(self):
        """Called when the bot has connected to Discord."""
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")

        # on_ready fires again after reconnects
        if self._started_notifications:
            return
        self._started_notifications = True

        result = await self.coordinator.start()
        logger.info(
            f"Notifications ready: {result.scheduled} active, {result.paused} paused, "
            f"{len(result.issues)} issue(s)"
        )

    async def send_daily_selector(self) -> None:
        """Post the daily slot selector to the broadcast channel."""
        channel_id = int(self.config.channel_id)
        channel = self.get_channel(channel_id)
        if channel is None:
            channel = await self.fetch_channel(channel_id)

        await channel.send(
            embed=build_selector_embed(),
            view=self.notification_cog.selector_view(),
        )
        logger.info(f"Posted daily selector to channel {channel_id}")

    async def close(self):
        """Clean up resources on shutdown."""
        if self.coordinator:
            await self.coordinator.shutdown()
        if self.store:
            await self.store.close()
        await super().close()


async def main():
    """Run the bot."""
    config = NotificationConfig.from_env()
    if config.is_disabled:
        logger.warning("BOT_TOKEN or CHANNEL_ID is missing or DISABLED, not starting")
        return

    bot = NotificationBot(config)
    async with bot:
        await bot.start(config.bot_token)


def run():
    """Console entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
