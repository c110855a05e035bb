"""Author subscription polling and its operator commands."""

from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands, tasks

from pixivbot.core.discord_sink import send_output
from pixivbot.services import AuthError, RequestSource, SubscriptionTracker
from pixivbot.services.subscriptions import latest_artwork_id

logger = logging.getLogger(__name__)

DISABLED_TEXT = "訂閱功能未啟用。"


class SubscriptionCog(commands.Cog):
    """作者訂閱推送 Cog"""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.settings = bot.settings  # type: ignore[attr-defined]
        self.tracker: SubscriptionTracker = bot.tracker  # type: ignore[attr-defined]

    async def cog_load(self) -> None:
        if not self.settings.enable_subscription:
            logger.info("Subscriptions disabled, polling not started")
            return
        self.poll_updates.change_interval(minutes=self.settings.update_interval)
        self.poll_updates.start()
        logger.info(
            f"Subscription polling every {self.settings.update_interval} min "
            f"for {len(self.settings.subscriptions)} author(s)"
        )

    async def cog_unload(self) -> None:
        self.poll_updates.cancel()

    # ==================== Background Tasks ====================

    @tasks.loop(minutes=30)
    async def poll_updates(self) -> None:
        # First tick fires at start; seeding already ran in before_loop
        if self.poll_updates.current_loop == 0:
            return
        try:
            await self.tracker.check_and_push()
        except Exception as e:
            logger.error(f"Error in subscription poll: {e}", exc_info=e)

    @poll_updates.before_loop
    async def before_poll_updates(self) -> None:
        await self.bot.wait_until_ready()
        try:
            created = await self.tracker.reconcile()
            logger.info(f"Subscription records seeded: {created}")
        except Exception as e:
            logger.error(f"Subscription seeding failed: {e}", exc_info=e)

    # ==================== Slash Commands ====================

    @app_commands.command(name="pixivcheck", description="手動觸發所有訂閱的更新檢查")
    @app_commands.default_permissions(administrator=True)
    async def pixivcheck_command(self, interaction: discord.Interaction) -> None:
        if not self.settings.enable_subscription:
            await interaction.response.send_message(DISABLED_TEXT, ephemeral=True)
            return

        await interaction.response.send_message("正在手動觸發所有訂閱的更新任務...")
        summary = await self.tracker.check_and_push(manual=True)
        if summary:
            await interaction.followup.send(summary)

    @app_commands.command(name="pixivtest", description="獲取作者最新作品並模擬推送到目前頻道")
    @app_commands.describe(uid="Pixiv 用戶 ID")
    @app_commands.default_permissions(administrator=True)
    async def pixivtest_command(self, interaction: discord.Interaction, uid: str) -> None:
        if not self.settings.enable_subscription:
            await interaction.response.send_message(DISABLED_TEXT, ephemeral=True)
            return
        uid = uid.strip()
        if not uid.isdigit():
            await interaction.response.send_message("請輸入有效的 Pixiv 用戶 ID。", ephemeral=True)
            return

        await interaction.response.send_message(
            f"正在為 [{uid}] 獲取最新作品並模擬推送到目前頻道..."
        )
        try:
            artworks = await self.tracker.client.get_user_artworks(uid)
        except AuthError as e:
            logger.error(f"Pixiv authentication failed (UID: {uid}): {e}")
            await interaction.followup.send("Pixiv 認證失敗，請檢查 Refresh Token 設定。")
            return

        latest = latest_artwork_id(artworks)
        if latest is None:
            await interaction.followup.send("無法找到該作者的任何作品。")
            return

        await interaction.followup.send(f"成功獲取到最新作品 ID: {latest}，正在生成推送內容...")
        output = await self.tracker.handler.handle_artwork_request(
            latest, source=RequestSource.LINK, silent=True, platform="discord"
        )
        try:
            if not output.deliverable:
                await interaction.followup.send("內容生成失敗。")
                return
            await send_output(interaction.followup, output, wait=True)
        finally:
            output.release()


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(SubscriptionCog(bot))
    logger.info("Subscription cog loaded")
