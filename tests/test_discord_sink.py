from pathlib import Path

import pytest

from pixivbot.core.discord_sink import MAX_CONTENT_LENGTH, build_messages, send_output
from pixivbot.shared.models import (
    BundleElement,
    FileElement,
    ImageElement,
    OutputKind,
    RenderedOutput,
    TextElement,
)


def images(count: int) -> list[ImageElement]:
    return [ImageElement(filename=f"1_p{i}.png", data=b"png") for i in range(count)]


def test_skip_sends_nothing():
    assert build_messages(RenderedOutput.skip()) == []


def test_plain_is_one_message_per_element():
    output = RenderedOutput(OutputKind.PLAIN, [TextElement("hello"), *images(2)])
    messages = build_messages(output)

    assert [m.content for m in messages] == ["hello", None, None]
    assert [m.attachments[0].filename for m in messages[1:]] == ["1_p0.png", "1_p1.png"]


def test_bundle_is_one_message_until_attachment_limit():
    output = RenderedOutput(OutputKind.FORWARD, [BundleElement((TextElement("title"), *images(12)))])
    messages = build_messages(output)

    assert len(messages) == 2
    assert messages[0].content == "title"
    assert len(messages[0].attachments) == 10
    assert messages[1].content is None
    assert len(messages[1].attachments) == 2


def test_pdf_text_and_document_travel_together(tmp_path: Path):
    pdf = tmp_path / "doc.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    output = RenderedOutput(
        OutputKind.PDF, [TextElement("caption"), FileElement(filename="夕焼け.pdf", path=pdf)]
    )
    messages = build_messages(output)

    assert len(messages) == 1
    assert messages[0].content == "caption"
    assert messages[0].attachments[0].filename == "夕焼け.pdf"


def test_long_text_is_truncated():
    output = RenderedOutput.notice("x" * (MAX_CONTENT_LENGTH + 50))
    (message,) = build_messages(output)
    assert len(message.content) == MAX_CONTENT_LENGTH


class RecordingDestination:
    def __init__(self):
        self.calls = []

    async def send(self, **kwargs):
        self.calls.append(kwargs)
        return object()


async def test_send_output_quotes_only_the_first_message():
    destination = RecordingDestination()
    reference = object()
    output = RenderedOutput(OutputKind.PLAIN, [TextElement("hello"), *images(1)])

    sent = await send_output(destination, output, reference=reference)

    assert len(sent) == 2
    assert destination.calls[0]["reference"] is reference
    assert destination.calls[0]["mention_author"] is False
    assert "reference" not in destination.calls[1]
    assert "content" not in destination.calls[1]


async def test_send_output_forwards_extra_arguments():
    destination = RecordingDestination()
    await send_output(destination, RenderedOutput.notice("hi"), wait=True)
    assert destination.calls == [{"wait": True, "content": "hi"}]


class FailingDestination:
    def __init__(self):
        self.calls = []

    async def send(self, **kwargs):
        self.calls.append(kwargs)
        raise RuntimeError("upload failed")


async def test_failed_send_closes_its_files_and_opens_no_others(tmp_path: Path):
    paths = []
    for name in ("a.pdf", "b.pdf"):
        path = tmp_path / name
        path.write_bytes(b"%PDF-1.4")
        paths.append(path)
    output = RenderedOutput(
        OutputKind.PLAIN, [FileElement(filename=p.name, path=p) for p in paths]
    )
    destination = FailingDestination()

    with pytest.raises(RuntimeError):
        await send_output(destination, output)

    # Only the first message was attempted; its handle was released
    assert len(destination.calls) == 1
    (attempted,) = destination.calls[0]["files"]
    assert attempted.filename == "a.pdf"
    assert attempted.fp.closed
