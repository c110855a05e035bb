"""Output selection for fetched artworks.

Decision order: R-18 gate -> no content -> PDF -> forward bundle -> plain.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import time
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from pixivbot.shared.models import (
    Artwork,
    BundleElement,
    DownloadedImage,
    FileElement,
    ImageElement,
    OutputKind,
    RenderedOutput,
    TextElement,
)

from .pdf import build_pdf

if TYPE_CHECKING:
    from pixivbot.config import Settings

logger = logging.getLogger(__name__)

ARTWORK_URL = "https://www.pixiv.net/artworks/{id}"

BLOCKED_TEXT = "根據設定，已屏蔽 R-18 作品。"
ALL_DOWNLOADS_FAILED_TEXT = "所有圖片都下載失敗了，無法發送。"


class RequestSource(str, Enum):
    COMMAND = "command"
    LINK = "link"


class OutputRenderer:
    """Turns an artwork and its image bytes into a delivery payload."""

    def __init__(self, settings: Settings, temp_dir: Path) -> None:
        self.settings = settings
        self.temp_dir = temp_dir
        self._pending_removals: set[asyncio.Task] = set()
        self._unreleased: set[Path] = set()

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def compose_text(self, artwork: Artwork, *, source: RequestSource, silent: bool) -> str:
        lines: list[str] = []
        if silent:
            lines.append(f"[{artwork.author_name} 的作品更新]")
        lines.append(f"[標題] {artwork.title}")
        if self.settings.send_author:
            lines.append(f"[作者] {artwork.author_name}")
        if self.settings.send_tags and artwork.tags:
            lines.append(f"[標籤] {', '.join(artwork.tags)}")
        if artwork.is_r18:
            lines.append("[警告] 本作品為 R-18/R-18G 內容")
        if source is RequestSource.COMMAND and self.settings.send_link_with_command:
            lines.append(f"[來源] {ARTWORK_URL.format(id=artwork.id)}")
        return "\n".join(lines)

    @staticmethod
    def warning_text(artwork: Artwork) -> str:
        return (
            "[警告] 該作品為 R-18/R-18G 內容！\n"
            f"標題: {artwork.title}\n"
            f"作者: {artwork.author_name}"
        )

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def gate(self, artwork: Artwork, *, silent: bool) -> RenderedOutput | None:
        """R-18 policy check, run before any image is downloaded.

        Returns the final output when the artwork must not be sent as-is,
        ``None`` when rendering may proceed.
        """
        if not artwork.is_r18:
            return None

        action = self.settings.r18_action
        if action == "block":
            return RenderedOutput.skip() if silent else RenderedOutput.notice(BLOCKED_TEXT)
        if action == "warn" and not silent:
            return RenderedOutput(OutputKind.WARNING, [TextElement(self.warning_text(artwork))])
        return None

    def wants_pdf(self, artwork: Artwork, image_count: int) -> bool:
        threshold = self.settings.pdf_threshold
        return (self.settings.auto_pdf_for_r18 and artwork.is_r18) or (
            threshold > 0 and image_count >= threshold
        )

    def wants_forward(self, image_count: int, platform: str | None) -> bool:
        threshold = self.settings.forward_threshold
        return (
            threshold > 0
            and image_count >= threshold
            and platform is not None
            and platform in self.settings.forward_platforms
        )

    async def render(
        self,
        artwork: Artwork,
        images: list[DownloadedImage],
        *,
        source: RequestSource,
        silent: bool,
        platform: str | None,
    ) -> RenderedOutput:
        """Build the payload. May raise RenderError on the PDF path."""
        if not images:
            if silent:
                return RenderedOutput(OutputKind.NO_CONTENT)
            return RenderedOutput(OutputKind.NO_CONTENT, [TextElement(ALL_DOWNLOADS_FAILED_TEXT)])

        text = self.compose_text(artwork, source=source, silent=silent)

        if self.wants_pdf(artwork, len(images)):
            return await self._render_pdf(artwork, images, text)

        image_elements = [
            ImageElement(filename=f"{artwork.id}_p{image.index}{image.extension}", data=image.data)
            for image in images
        ]

        if self.wants_forward(len(images), platform):
            bundle = BundleElement(elements=(TextElement(text), *image_elements))
            return RenderedOutput(OutputKind.FORWARD, [bundle])

        return RenderedOutput(OutputKind.PLAIN, [TextElement(text), *image_elements])

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    async def _render_pdf(
        self, artwork: Artwork, images: list[DownloadedImage], text: str
    ) -> RenderedOutput:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        work_dir = Path(tempfile.mkdtemp(prefix=f"pid_{artwork.id}_", dir=self.temp_dir))
        output_path = self.temp_dir / f"pid_{artwork.id}_{time.time_ns()}.pdf"
        quality = self.settings.compression_quality if self.settings.enable_compression else None

        try:
            await asyncio.to_thread(
                build_pdf,
                images,
                output_path,
                work_dir,
                quality=quality,
                password=self.settings.pdf_password or None,
            )
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        filename = f"{artwork.safe_title}.pdf"
        if self.settings.pdf_send_mode == "file":
            if self.settings.debug:
                logger.info(f"[PDF] file mode: {output_path}")
            # Kept until the caller releases the output after its last send
            self._unreleased.add(output_path)
            document = FileElement(filename=filename, path=output_path)
            return RenderedOutput(
                OutputKind.PDF,
                [TextElement(text), document],
                on_release=lambda: self._release_file(output_path),
            )

        if self.settings.debug:
            logger.info("[PDF] buffer mode")
        try:
            data = await asyncio.to_thread(output_path.read_bytes)
        finally:
            output_path.unlink(missing_ok=True)
        document = FileElement(filename=filename, data=data)
        return RenderedOutput(OutputKind.PDF, [TextElement(text), document])

    def _release_file(self, path: Path) -> None:
        self._unreleased.discard(path)
        self._schedule_removal(path, self.settings.pdf_file_grace_seconds)

    def _schedule_removal(self, path: Path, delay: float) -> None:
        task = asyncio.get_running_loop().create_task(self._remove_later(path, delay))
        self._pending_removals.add(task)
        task.add_done_callback(self._pending_removals.discard)

    @staticmethod
    async def _remove_later(path: Path, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        finally:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"[PDF] failed to remove temp file {path}: {e}")

    async def aclose(self) -> None:
        """Remove file-mode PDFs that are unreleased or waiting for their grace delay."""
        tasks = list(self._pending_removals)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for path in list(self._unreleased):
            path.unlink(missing_ok=True)
        self._unreleased.clear()
