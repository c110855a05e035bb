"""PDF assembly for multi-page artworks.

Blocking code; callers run :func:`build_pdf` through ``asyncio.to_thread``.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

import img2pdf
import pikepdf
from PIL import Image

from pixivbot.shared.models import DownloadedImage

from .errors import RenderError

logger = logging.getLogger(__name__)

# Formats img2pdf can embed without re-encoding
_PASSTHROUGH_FORMATS = {"JPEG", "PNG"}

# At 72 dpi one pixel is one PDF point, so pages match the image size
_PIXEL_LAYOUT = img2pdf.get_fixed_dpi_layout_fun((72, 72))


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )


def _prepare_page(image: DownloadedImage, work_dir: Path, position: int, quality: int | None) -> Path:
    """Write one page image into ``work_dir`` and return its path."""
    with Image.open(io.BytesIO(image.data)) as source:
        if quality is not None:
            page_path = work_dir / f"{position}.jpg"
            source.convert("RGB").save(page_path, "JPEG", quality=quality)
            return page_path

        if source.format in _PASSTHROUGH_FORMATS and not _has_alpha(source):
            page_path = work_dir / f"{position}{image.extension}"
            page_path.write_bytes(image.data)
            return page_path

        # PDF images cannot carry an alpha channel; flatten losslessly to PNG
        page_path = work_dir / f"{position}.png"
        source.convert("RGB").save(page_path, "PNG")
        return page_path


def build_pdf(
    images: list[DownloadedImage],
    output_path: Path,
    work_dir: Path,
    *,
    quality: int | None = None,
    password: str | None = None,
) -> Path:
    """Write a PDF with one page per image to ``output_path``.

    Page images are staged in ``work_dir``; the caller owns its cleanup.
    With ``quality`` set every page is recompressed to JPEG at that quality,
    otherwise the original bytes are embedded. ``password`` is applied as both
    the user and the owner password.
    """
    if not images:
        raise RenderError("no images to put in the PDF")

    try:
        page_paths = [
            _prepare_page(image, work_dir, position, quality)
            for position, image in enumerate(images, start=1)
        ]
        document = img2pdf.convert([str(p) for p in page_paths], layout_fun=_PIXEL_LAYOUT)

        if password:
            with pikepdf.open(io.BytesIO(document)) as pdf:
                pdf.save(
                    output_path,
                    encryption=pikepdf.Encryption(user=password, owner=password),
                )
        else:
            output_path.write_bytes(document)
    except RenderError:
        raise
    except Exception as e:
        output_path.unlink(missing_ok=True)
        raise RenderError(f"PDF build failed: {type(e).__name__}: {e}") from e

    logger.debug(f"PDF written: {output_path} ({len(images)} pages)")
    return output_path
