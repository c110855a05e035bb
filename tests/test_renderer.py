import asyncio
import io

import pikepdf
import pytest

from pixivbot.services import OutputRenderer, RequestSource
from pixivbot.services.renderer import ALL_DOWNLOADS_FAILED_TEXT, BLOCKED_TEXT
from pixivbot.shared.models import (
    BundleElement,
    DownloadedImage,
    FileElement,
    ImageElement,
    OutputKind,
    Restriction,
    TextElement,
)

from .conftest import image_bytes, make_artwork, make_images, make_settings


def make_renderer(tmp_path, **overrides) -> OutputRenderer:
    settings = make_settings(data_dir=tmp_path, **overrides)
    return OutputRenderer(settings, settings.temp_dir)


async def render(renderer, artwork, images, *, source=RequestSource.LINK, silent=False, platform="discord"):
    return await renderer.render(artwork, images, source=source, silent=silent, platform=platform)


# ==================== Text ====================


def test_compose_text_line_order(tmp_path):
    renderer = make_renderer(tmp_path, send_link_with_command=True)
    artwork = make_artwork("555", restriction=Restriction.R18)

    text = renderer.compose_text(artwork, source=RequestSource.COMMAND, silent=True)

    assert text.splitlines() == [
        "[Alice 的作品更新]",
        "[標題] 夕焼け",
        "[作者] Alice",
        "[標籤] 風景, オリジナル",
        "[警告] 本作品為 R-18/R-18G 內容",
        "[來源] https://www.pixiv.net/artworks/555",
    ]


def test_compose_text_respects_toggles(tmp_path):
    renderer = make_renderer(
        tmp_path, send_author=False, send_tags=False, send_link_with_command=True
    )
    text = renderer.compose_text(make_artwork(), source=RequestSource.LINK, silent=False)
    assert text == "[標題] 夕焼け"


def test_compose_text_skips_empty_tags(tmp_path):
    renderer = make_renderer(tmp_path)
    text = renderer.compose_text(make_artwork(tags=()), source=RequestSource.LINK, silent=False)
    assert "[標籤]" not in text


# ==================== R-18 gate ====================


def test_warn_blocks_interactive_r18_with_warning(tmp_path):
    renderer = make_renderer(tmp_path, r18_action="warn")
    output = renderer.gate(make_artwork(restriction=Restriction.R18G), silent=False)

    assert output is not None
    assert output.kind is OutputKind.WARNING
    assert output.text.startswith("[警告] 該作品為 R-18/R-18G 內容！")
    assert "作者: Alice" in output.text


def test_warn_lets_silent_requests_through(tmp_path):
    renderer = make_renderer(tmp_path, r18_action="warn")
    assert renderer.gate(make_artwork(restriction=Restriction.R18), silent=True) is None


@pytest.mark.parametrize("silent, kind", [(False, OutputKind.NOTICE), (True, OutputKind.SKIP)])
def test_block(tmp_path, silent, kind):
    renderer = make_renderer(tmp_path, r18_action="block")
    output = renderer.gate(make_artwork(restriction=Restriction.R18), silent=silent)
    assert output is not None
    assert output.kind is kind
    if kind is OutputKind.NOTICE:
        assert output.text == BLOCKED_TEXT


def test_safe_artworks_pass_gate(tmp_path):
    renderer = make_renderer(tmp_path, r18_action="block")
    assert renderer.gate(make_artwork(), silent=False) is None


# ==================== Output selection ====================


async def test_no_images_is_no_content(tmp_path):
    renderer = make_renderer(tmp_path)
    output = await render(renderer, make_artwork(), [])
    assert output.kind is OutputKind.NO_CONTENT
    assert output.text == ALL_DOWNLOADS_FAILED_TEXT

    silent = await render(renderer, make_artwork(), [], silent=True)
    assert silent.kind is OutputKind.NO_CONTENT
    assert silent.elements == []


async def test_plain_output_keeps_text_then_images_in_order(tmp_path):
    renderer = make_renderer(tmp_path, forward_threshold=3)
    output = await render(renderer, make_artwork("9", pages=2), make_images(2))

    assert output.kind is OutputKind.PLAIN
    assert isinstance(output.elements[0], TextElement)
    assert [e.filename for e in output.elements[1:]] == ["9_p0.png", "9_p1.png"]


async def test_forward_bundle_at_threshold(tmp_path):
    renderer = make_renderer(tmp_path, forward_threshold=3, pdf_threshold=10)
    output = await render(renderer, make_artwork("9", pages=3), make_images(3))

    assert output.kind is OutputKind.FORWARD
    assert len(output.elements) == 1
    bundle = output.elements[0]
    assert isinstance(bundle, BundleElement)
    assert isinstance(bundle.elements[0], TextElement)
    assert all(isinstance(e, ImageElement) for e in bundle.elements[1:])
    assert len(bundle.elements) == 4


async def test_forward_only_on_supported_platforms(tmp_path):
    renderer = make_renderer(tmp_path, forward_threshold=2, forward_platforms=["onebot"])
    output = await render(renderer, make_artwork(pages=3), make_images(3), platform="discord")
    assert output.kind is OutputKind.PLAIN


async def test_zero_thresholds_disable_bundle_and_pdf(tmp_path):
    renderer = make_renderer(tmp_path, forward_threshold=0, pdf_threshold=0, auto_pdf_for_r18=False)
    output = await render(renderer, make_artwork(pages=12), make_images(12))
    assert output.kind is OutputKind.PLAIN
    assert len(output.elements) == 13


async def test_threshold_counts_downloaded_images(tmp_path):
    renderer = make_renderer(tmp_path, forward_threshold=3)
    # Three pages, one download failed
    output = await render(renderer, make_artwork(pages=3), make_images(2))
    assert output.kind is OutputKind.PLAIN


# ==================== PDF ====================


def pdf_document(output) -> bytes:
    document = output.elements[-1]
    assert isinstance(document, FileElement)
    return document.data if document.data is not None else document.path.read_bytes()


async def test_pdf_has_one_page_per_image_sized_to_pixels(tmp_path):
    renderer = make_renderer(tmp_path, pdf_threshold=2, enable_compression=False)
    images = [
        DownloadedImage(0, "https://i.pximg.net/a_p0.png", image_bytes((40, 30))),
        DownloadedImage(1, "https://i.pximg.net/a_p1.jpg", image_bytes((64, 48), fmt="JPEG")),
        DownloadedImage(2, "https://i.pximg.net/a_p2.png", image_bytes((20, 20), mode="RGBA")),
    ]

    output = await render(renderer, make_artwork("77", pages=3), images)

    assert output.kind is OutputKind.PDF
    assert isinstance(output.elements[0], TextElement)
    assert output.elements[1].filename == "夕焼け.pdf"
    with pikepdf.open(io.BytesIO(pdf_document(output))) as pdf:
        sizes = [
            (round(float(p.mediabox[2])), round(float(p.mediabox[3]))) for p in pdf.pages
        ]
    assert sizes == [(40, 30), (64, 48), (20, 20)]


async def test_pdf_compression_keeps_page_count(tmp_path):
    renderer = make_renderer(tmp_path, pdf_threshold=2, enable_compression=True, compression_quality=50)
    output = await render(renderer, make_artwork(pages=2), make_images(2))
    with pikepdf.open(io.BytesIO(pdf_document(output))) as pdf:
        assert len(pdf.pages) == 2


async def test_r18_goes_to_pdf_when_auto_pdf_enabled(tmp_path):
    renderer = make_renderer(tmp_path, r18_action="send", auto_pdf_for_r18=True)
    artwork = make_artwork(restriction=Restriction.R18)
    output = await render(renderer, artwork, make_images(1))
    assert output.kind is OutputKind.PDF


async def test_password_protects_pdf(tmp_path):
    renderer = make_renderer(tmp_path, pdf_threshold=1, pdf_password="s3cret")
    output = await render(renderer, make_artwork(), make_images(1))
    data = pdf_document(output)

    with pytest.raises(pikepdf.PasswordError):
        pikepdf.open(io.BytesIO(data))
    with pikepdf.open(io.BytesIO(data), password="s3cret") as pdf:
        assert len(pdf.pages) == 1


async def test_buffer_mode_leaves_no_temp_files(tmp_path):
    renderer = make_renderer(tmp_path, pdf_threshold=1, pdf_send_mode="buffer")
    output = await render(renderer, make_artwork(), make_images(2))

    assert output.elements[-1].data
    assert output.elements[-1].path is None
    assert list(renderer.temp_dir.iterdir()) == []


async def test_file_mode_keeps_pdf_until_released(tmp_path):
    renderer = make_renderer(
        tmp_path, pdf_threshold=1, pdf_send_mode="file", pdf_file_grace_seconds=0.05
    )
    output = await render(renderer, make_artwork(), make_images(1))
    path = output.elements[-1].path

    assert path is not None and path.exists()
    # Staging directories are gone immediately
    assert list(renderer.temp_dir.iterdir()) == [path]

    # No release yet: the grace delay has not started
    await asyncio.sleep(0.2)
    assert path.exists()

    output.release()
    assert path.exists()
    await asyncio.sleep(0.2)
    assert not path.exists()


async def test_release_is_idempotent_and_harmless_for_buffer_mode(tmp_path):
    renderer = make_renderer(tmp_path, pdf_threshold=1, pdf_send_mode="buffer")
    output = await render(renderer, make_artwork(), make_images(1))
    output.release()
    output.release()
    assert renderer._pending_removals == set()


async def test_aclose_removes_unreleased_and_pending_file_mode_pdfs(tmp_path):
    renderer = make_renderer(
        tmp_path, pdf_threshold=1, pdf_send_mode="file", pdf_file_grace_seconds=60
    )
    unreleased = (await render(renderer, make_artwork("1"), make_images(1))).elements[-1].path
    released_output = await render(renderer, make_artwork("2"), make_images(1))
    released_output.release()
    pending = released_output.elements[-1].path

    await renderer.aclose()
    assert not unreleased.exists()
    assert not pending.exists()


async def test_unreadable_image_raises_render_error_and_cleans_up(tmp_path):
    from pixivbot.services import RenderError

    renderer = make_renderer(tmp_path, pdf_threshold=1)
    broken = [DownloadedImage(0, "https://i.pximg.net/x.png", b"not an image")]

    with pytest.raises(RenderError):
        await render(renderer, make_artwork(), broken)
    assert list(renderer.temp_dir.iterdir()) == []
