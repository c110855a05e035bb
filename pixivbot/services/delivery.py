"""Delivery sink interface implemented by messaging platforms."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from pixivbot.shared.models import RenderedOutput


class DeliverySink(Protocol):
    """A connected bot identity able to post rendered output."""

    platform: str
    self_id: str

    @property
    def online(self) -> bool: ...

    async def send(self, channel_id: str, output: RenderedOutput) -> list[str]:
        """Send ``output`` to ``channel_id``; returns the ids of the sent messages."""
        ...

    async def delete_message(self, channel_id: str, message_id: str) -> None: ...


def find_bot(bots: Iterable[DeliverySink], platform: str, self_id: str | None) -> DeliverySink | None:
    """Return the online bot matching ``platform:self_id``, if any."""
    for bot in bots:
        if bot.platform == platform and bot.self_id == str(self_id) and bot.online:
            return bot
    return None
