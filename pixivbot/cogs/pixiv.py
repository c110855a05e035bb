"""Pixiv artwork and author commands, plus automatic link parsing."""

from __future__ import annotations

import logging
import re

import discord
from discord import app_commands
from discord.ext import commands

from pixivbot.core.discord_sink import send_output
from pixivbot.services import ArtworkRequestHandler, RequestSource

logger = logging.getLogger(__name__)

PIXIV_LINK_PATTERN = re.compile(r"pixiv\.net/(?:artworks|i)/(\d+)")
INVALID_ID_TEXT = "請輸入有效的 Pixiv 作品 ID。"
INVALID_UID_TEXT = "請輸入有效的 Pixiv 用戶 ID。"


def parsing_text(artwork_id: str) -> str:
    return f"正在解析 Pixiv 作品 (ID: {artwork_id})..."


class PixivCog(commands.Cog):
    """Pixiv 作品解析 Cog"""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.settings = bot.settings  # type: ignore[attr-defined]
        self.handler: ArtworkRequestHandler = bot.handler  # type: ignore[attr-defined]

    # ==================== Slash Commands ====================

    @app_commands.command(name="pid", description="根據作品 ID 獲取 Pixiv 作品")
    @app_commands.describe(artwork_id="Pixiv 作品 ID")
    async def pid_command(self, interaction: discord.Interaction, artwork_id: str) -> None:
        artwork_id = artwork_id.strip()
        if not artwork_id.isdigit():
            await interaction.response.send_message(INVALID_ID_TEXT, ephemeral=True)
            return

        await interaction.response.send_message(parsing_text(artwork_id))
        try:
            output = await self.handler.handle_artwork_request(
                artwork_id, source=RequestSource.COMMAND, platform="discord"
            )
            try:
                await send_output(interaction.followup, output, wait=True)
            finally:
                output.release()
        finally:
            await self._delete_status(interaction)

    @app_commands.command(name="uid", description="根據用戶 ID 獲取作者資訊與主頁截圖")
    @app_commands.describe(uid="Pixiv 用戶 ID")
    async def uid_command(self, interaction: discord.Interaction, uid: str) -> None:
        if not self.settings.enable_uid_command:
            await interaction.response.send_message("uid 指令未啟用。", ephemeral=True)
            return
        uid = uid.strip()
        if not uid.isdigit():
            await interaction.response.send_message(INVALID_UID_TEXT, ephemeral=True)
            return

        await interaction.response.send_message(f"正在獲取 Pixiv 用戶資訊 (UID: {uid})...")
        try:
            output = await self.handler.handle_author_request(
                uid, include_text=self.settings.send_user_info_text
            )
            await send_output(interaction.followup, output, wait=True)
        finally:
            await self._delete_status(interaction)

    # ==================== Link Detection ====================

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        content = message.content.strip()
        if content.startswith(f"{self.settings.command_prefix}pid"):
            return
        match = PIXIV_LINK_PATTERN.search(content)
        if not match:
            return

        artwork_id = match.group(1)
        logger.info(f"Pixiv link detected in channel {message.channel.id}: {artwork_id}")
        status: discord.Message | None = None
        try:
            status = await message.reply(parsing_text(artwork_id), mention_author=False)
        except discord.HTTPException as e:
            logger.warning(f"Cannot send status message: {e}")

        try:
            output = await self.handler.handle_artwork_request(
                artwork_id, source=RequestSource.LINK, platform="discord"
            )
            try:
                await send_output(message.channel, output, reference=message)
            finally:
                output.release()
        except discord.HTTPException as e:
            logger.error(f"Failed to deliver Pixiv artwork {artwork_id}: {e}")
        finally:
            if status is not None:
                try:
                    await status.delete()
                except discord.HTTPException:
                    pass

    # ==================== Helpers ====================

    @staticmethod
    async def _delete_status(interaction: discord.Interaction) -> None:
        """刪除「正在解析」狀態訊息，失敗時忽略"""
        try:
            await interaction.delete_original_response()
        except discord.HTTPException:
            pass


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(PixivCog(bot))
    logger.info("Pixiv cog loaded")
