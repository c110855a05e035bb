"""Single entry point shared by commands, link detection and subscriptions."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pixivbot.shared.models import (
    AuthorProfile,
    ImageElement,
    OutputKind,
    RenderedOutput,
    TextElement,
)

from .errors import AuthError, RenderError
from .pixiv_api import PixivClient
from .renderer import OutputRenderer, RequestSource

if TYPE_CHECKING:
    from .screenshot import ScreenshotService

logger = logging.getLogger(__name__)

NOT_FOUND_TEXT = "找不到該 ID 對應的插畫作品。"
AUTH_FAILED_TEXT = "Pixiv 認證失敗，請檢查 Refresh Token 設定。"
RENDER_FAILED_TEXT = "生成 PDF 失敗，請稍後再試。"
USER_URL = "https://www.pixiv.net/users/{id}"


class ArtworkRequestHandler:
    def __init__(
        self,
        client: PixivClient,
        renderer: OutputRenderer,
        screenshots: ScreenshotService | None = None,
    ) -> None:
        self.client = client
        self.renderer = renderer
        self.screenshots = screenshots

    async def handle_artwork_request(
        self,
        artwork_id: str,
        *,
        source: RequestSource,
        silent: bool = False,
        platform: str | None = None,
    ) -> RenderedOutput:
        """Fetch, gate, download and render one artwork.

        Never raises: every failure is turned into a NOTICE for interactive
        requests or a SKIP / NO_CONTENT for silent (subscription) ones.
        """
        try:
            artwork = await self.client.get_artwork_detail(artwork_id)
            if artwork is None:
                return RenderedOutput.skip() if silent else RenderedOutput.notice(NOT_FOUND_TEXT)

            gated = self.renderer.gate(artwork, silent=silent)
            if gated is not None:
                return gated

            images = await self.client.download_images(artwork.image_urls)
            if len(images) < len(artwork.image_urls):
                logger.warning(
                    f"PID {artwork_id}: {len(artwork.image_urls) - len(images)} of "
                    f"{len(artwork.image_urls)} images unavailable"
                )

            return await self.renderer.render(
                artwork, images, source=source, silent=silent, platform=platform
            )
        except AuthError as e:
            logger.error(f"Pixiv authentication failed (PID: {artwork_id}): {e}")
            return RenderedOutput.skip() if silent else RenderedOutput.notice(AUTH_FAILED_TEXT)
        except RenderError as e:
            logger.error(f"Render failed (PID: {artwork_id}): {e}")
            return RenderedOutput.skip() if silent else RenderedOutput.notice(RENDER_FAILED_TEXT)
        except Exception as e:
            logger.exception(f"Unexpected error handling Pixiv request (PID: {artwork_id}): {e}")
            if silent:
                return RenderedOutput.skip()
            return RenderedOutput.notice(f"處理時發生未知錯誤：{e}")

    # ------------------------------------------------------------------
    # Author profile
    # ------------------------------------------------------------------

    @staticmethod
    def compose_profile_text(profile: AuthorProfile) -> str:
        lines = [
            f"[作者] {profile.name} (@{profile.account})",
            f"[主頁] {USER_URL.format(id=profile.id)}",
        ]
        if profile.total_follow_users:
            lines.append(f"[關注] {profile.total_follow_users} 人")
        if profile.total_works > 0:
            lines.append(f"[插畫/漫畫] {profile.total_works} 個")
        if bio := profile.clean_comment:
            lines.append(f"[簡介] {bio}")
        return "\n".join(lines)

    async def handle_author_request(self, uid: str, *, include_text: bool = True) -> RenderedOutput:
        """Profile text plus a screenshot of the author's page, fetched concurrently."""

        async def no_profile() -> AuthorProfile | None:
            return None

        async def no_screenshot() -> bytes | None:
            return None

        try:
            profile, screenshot = await asyncio.gather(
                self.client.get_user_detail(uid) if include_text else no_profile(),
                self.screenshots.take_user_page(uid) if self.screenshots else no_screenshot(),
            )
        except AuthError as e:
            logger.error(f"Pixiv authentication failed (UID: {uid}): {e}")
            return RenderedOutput.notice(AUTH_FAILED_TEXT)

        elements: list[TextElement | ImageElement] = []
        if profile is not None:
            elements.append(TextElement(self.compose_profile_text(profile)))
        elif include_text:
            elements.append(TextElement("獲取作者文字資訊失敗。"))

        if screenshot:
            elements.append(ImageElement(filename=f"user_{uid}.png", data=screenshot))
        else:
            elements.append(TextElement("獲取主頁截圖失敗。"))

        return RenderedOutput(OutputKind.PLAIN, list(elements))
