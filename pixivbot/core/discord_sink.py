"""Discord implementation of the delivery sink."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any

import discord
from discord.ext import commands

from pixivbot.shared.models import (
    BundleElement,
    Element,
    FileElement,
    ImageElement,
    OutputKind,
    RenderedOutput,
    TextElement,
)

logger = logging.getLogger(__name__)

MAX_ATTACHMENTS = 10
MAX_CONTENT_LENGTH = 2000

Attachment = ImageElement | FileElement


@dataclass
class DiscordMessage:
    """Arguments for one ``send`` call.

    Attachments stay as elements until the message is sent, so file handles
    are only opened for the message going out.
    """

    content: str | None = None
    attachments: list[Attachment] = field(default_factory=list)

    def open_files(self) -> list[discord.File]:
        return [_to_file(a) for a in self.attachments]


def _truncate(text: str) -> str:
    if len(text) <= MAX_CONTENT_LENGTH:
        return text
    return text[: MAX_CONTENT_LENGTH - 1] + "…"


def _to_file(element: Attachment) -> discord.File:
    if isinstance(element, FileElement) and element.path is not None:
        return discord.File(element.path, filename=element.filename)
    return discord.File(io.BytesIO(element.data or b""), filename=element.filename)


def _chunked(items: list, size: int) -> list[list]:
    return [items[i : i + size] for i in range(0, len(items), size)] or [[]]


def build_messages(output: RenderedOutput) -> list[DiscordMessage]:
    """Map rendered output onto Discord messages.

    A bundle becomes one message carrying all attachments (split only by the
    attachment limit); plain output becomes one message per element.
    """
    if output.kind is OutputKind.SKIP:
        return []

    messages: list[DiscordMessage] = []
    for element in output.elements:
        messages.extend(_element_messages(element))

    if output.kind is OutputKind.PDF and len(messages) > 1:
        # Text and document travel together
        merged = DiscordMessage(
            content="\n".join(m.content for m in messages if m.content) or None,
            attachments=[a for m in messages for a in m.attachments],
        )
        return [merged]
    return messages


def _element_messages(element: Element) -> list[DiscordMessage]:
    if isinstance(element, TextElement):
        return [DiscordMessage(content=_truncate(element.text))]
    if isinstance(element, ImageElement | FileElement):
        return [DiscordMessage(attachments=[element])]
    if not isinstance(element, BundleElement):
        logger.warning(f"Unsupported element type: {type(element).__name__}")
        return []

    text = "\n".join(e.text for e in element.elements if isinstance(e, TextElement))
    images: list[Attachment] = [e for e in element.elements if isinstance(e, ImageElement)]
    chunks = _chunked(images, MAX_ATTACHMENTS)
    return [
        DiscordMessage(content=_truncate(text) if i == 0 and text else None, attachments=chunk)
        for i, chunk in enumerate(chunks)
    ]


async def send_output(
    destination: discord.abc.Messageable | discord.Webhook,
    output: RenderedOutput,
    *,
    reference: discord.Message | None = None,
    **send_kwargs: Any,
) -> list[discord.Message]:
    """Send ``output``; the first message quotes ``reference`` when given.

    ``destination`` is a channel or an interaction followup webhook; extra
    keyword arguments go to every ``send`` call.
    """
    sent: list[discord.Message] = []
    for message in build_messages(output):
        kwargs: dict[str, Any] = dict(send_kwargs)
        if message.content:
            kwargs["content"] = message.content
        if reference is not None and not sent:
            kwargs["reference"] = reference
            kwargs["mention_author"] = False
        files = message.open_files()
        if files:
            kwargs["files"] = files
        try:
            result = await destination.send(**kwargs)
        finally:
            for file in files:
                file.close()
        if result is not None:
            sent.append(result)
    return sent


class DiscordSink:
    """Delivery sink backed by the running discord.py bot."""

    platform = "discord"

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @property
    def self_id(self) -> str:
        return str(self.bot.user.id) if self.bot.user else ""

    @property
    def online(self) -> bool:
        return self.bot.is_ready() and not self.bot.is_closed()

    async def _channel(self, channel_id: str) -> discord.abc.Messageable:
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        if not isinstance(channel, discord.abc.Messageable):
            raise TypeError(f"Channel {channel_id} cannot receive messages")
        return channel

    async def send(self, channel_id: str, output: RenderedOutput) -> list[str]:
        channel = await self._channel(channel_id)
        sent = await send_output(channel, output)
        return [str(m.id) for m in sent]

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        channel = await self._channel(channel_id)
        partial = channel.get_partial_message(int(message_id))  # type: ignore[attr-defined]
        await partial.delete()
