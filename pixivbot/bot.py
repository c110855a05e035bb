"""
Pixiv Discord Bot
使用 discord.py 2.x 和 Slash Commands
"""

import asyncio
import logging

import discord
import httpx
from discord import app_commands
from discord.ext import commands
from dotenv import load_dotenv

from pixivbot.config import PROJECT_DIR, Settings, get_settings
from pixivbot.core import DiscordSink, HealthCheckServer, setup_logging
from pixivbot.services import (
    ArtworkRequestHandler,
    CredentialManager,
    CredentialState,
    OutputRenderer,
    PixivClient,
    SubscriptionTracker,
)
from pixivbot.services.screenshot import ScreenshotService
from pixivbot.shared.database import DatabaseManager
from pixivbot.shared.migrations import MigrationRunner
from pixivbot.shared.repositories import LastSeenRepository

logger = logging.getLogger("pixivbot")


class PixivBotClient(commands.Bot):
    """Pixiv Discord Bot 客戶端"""

    def __init__(self, settings: Settings):
        intents = discord.Intents.default()
        intents.message_content = True  # 需要讀取訊息內容以偵測連結

        super().__init__(
            command_prefix=commands.when_mentioned_or(settings.command_prefix),
            intents=intents,
            help_command=None,
        )

        self.settings = settings
        self.initial_extensions = [
            "pixivbot.cogs.pixiv",
            "pixivbot.cogs.subscription",
        ]

        self.database = DatabaseManager(settings.database_url) if settings.database_url else None
        self.http_client: httpx.AsyncClient | None = None
        self.renderer = OutputRenderer(settings, settings.temp_dir)
        self.screenshots = ScreenshotService(
            settings.pixiv_phpsessid or None, debug=settings.debug
        )
        self.sink = DiscordSink(self)
        self.handler: ArtworkRequestHandler
        self.tracker: SubscriptionTracker
        self.health_server: HealthCheckServer | None = None

        self.tree.on_error = self.on_app_command_error

    async def _init_storage(self) -> LastSeenRepository | None:
        if self.database is None:
            if self.settings.enable_subscription:
                raise RuntimeError("DATABASE_URL is required when subscriptions are enabled")
            return None
        await self.database.connect()
        applied = await MigrationRunner(self.database.pool).run_pending()
        if applied:
            logger.info(f"Applied migrations: {', '.join(applied)}")
        return LastSeenRepository(self.database.pool)

    async def setup_hook(self):
        """Bot 啟動時的初始化設置"""
        settings = self.settings
        settings.temp_dir.mkdir(parents=True, exist_ok=True)

        repository = await self._init_storage()

        self.http_client = httpx.AsyncClient(follow_redirects=True)
        credentials = CredentialManager(
            CredentialState(
                refresh_token=settings.pixiv_refresh_token,
                client_id=settings.pixiv_client_id,
                client_secret=settings.pixiv_client_secret,
            ),
            self.http_client,
        )
        client = PixivClient(
            credentials,
            self.http_client,
            download_concurrency=settings.download_concurrency,
            debug=settings.debug,
        )
        self.handler = ArtworkRequestHandler(client, self.renderer, self.screenshots)
        self.tracker = SubscriptionTracker(
            settings,
            client,
            self.handler,
            repository,  # type: ignore[arg-type]
            bots=lambda: [self.sink],
        )

        loaded = []
        failed = []
        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
                loaded.append(extension.split(".")[-1])
            except Exception as e:
                failed.append(f"{extension.split('.')[-1]} ({e})")

        if loaded:
            logger.info(f"Loaded cogs: {', '.join(loaded)}")
        if failed:
            logger.error(f"Failed to load cogs: {', '.join(failed)}")

        logger.info("Syncing slash commands...")
        if settings.discord_guild_id:
            guild = discord.Object(id=int(settings.discord_guild_id))
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info(f"Slash commands synced to guild {settings.discord_guild_id}")
        else:
            await self.tree.sync()
            logger.info("Slash commands synced globally")

        self.health_server = HealthCheckServer(
            self, settings.health_host, settings.port, tracker=self.tracker
        )
        await self.health_server.start()

        logger.info("Connecting to Discord...")

    async def on_ready(self):
        logger.info(f"Bot ready: {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s) | discord.py {discord.__version__}")

    async def close(self):
        if self.health_server:
            await self.health_server.stop()
        await self.renderer.aclose()
        await self.screenshots.close()
        if self.http_client:
            await self.http_client.aclose()
        if self.database:
            await self.database.disconnect()
        await super().close()

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError):
        """處理前綴指令錯誤"""
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, commands.MissingPermissions):
            await ctx.send("你沒有權限使用這個指令")
            return

        logger.error(f"Command error: {error}", exc_info=error)
        await ctx.send("執行指令時發生錯誤")

    async def on_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ):
        """處理斜線指令錯誤"""
        if isinstance(error, app_commands.MissingPermissions):
            text = "你沒有權限使用這個指令"
        else:
            logger.error(f"Slash command error: {error}", exc_info=error)
            text = "執行指令時發生錯誤"
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True)
        else:
            await interaction.response.send_message(text, ephemeral=True)


async def main():
    """Bot 啟動主函數"""
    load_dotenv(dotenv_path=PROJECT_DIR / ".env", encoding="utf-8")
    settings = get_settings()
    setup_logging(settings.log_level)

    if not settings.discord_bot_token:
        logger.error("DISCORD_BOT_TOKEN is not set")
        logger.error("Set it in .env: DISCORD_BOT_TOKEN=your_token_here")
        return
    if not settings.pixiv_refresh_token:
        logger.warning("PIXIV_REFRESH_TOKEN is not set, Pixiv requests will fail")

    async with PixivBotClient(settings) as bot:
        try:
            await bot.start(settings.discord_bot_token)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()


def run():
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Bot stopped")
    except Exception as e:
        logger.error(f"Bot crashed: {e}", exc_info=e)


if __name__ == "__main__":
    run()
