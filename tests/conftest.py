"""Shared fixtures: settings, fake stores and sinks, generated images."""

from __future__ import annotations

import io
from typing import Any

import pytest
from PIL import Image

from pixivbot.config import Settings
from pixivbot.shared.models import Artwork, DownloadedImage, LastSeenRecord, Restriction


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {"data_dir": "/tmp/pixivbot-tests"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def image_bytes(size: tuple[int, int] = (40, 30), fmt: str = "PNG", mode: str = "RGB") -> bytes:
    color = (200, 40, 90, 128) if mode == "RGBA" else (200, 40, 90)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, fmt)
    return buffer.getvalue()


def make_artwork(
    artwork_id: str = "100",
    *,
    pages: int = 1,
    restriction: Restriction = Restriction.NONE,
    tags: tuple[str, ...] = ("風景", "オリジナル"),
) -> Artwork:
    return Artwork(
        id=artwork_id,
        title="夕焼け",
        author_name="Alice",
        author_id="42",
        tags=tags,
        restriction=restriction,
        image_urls=tuple(
            f"https://i.pximg.net/img-original/{artwork_id}_p{i}.png" for i in range(pages)
        ),
    )


def make_images(count: int, size: tuple[int, int] = (40, 30)) -> list[DownloadedImage]:
    return [
        DownloadedImage(index=i, url=f"https://i.pximg.net/x_p{i}.png", data=image_bytes(size))
        for i in range(count)
    ]


def illust_payload(
    artwork_id: int = 100, *, pages: int = 1, x_restrict: int = 0, user_id: int = 42
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": artwork_id,
        "title": "夕焼け",
        "user": {"id": user_id, "name": "Alice"},
        "tags": [{"name": "風景"}, {"name": "オリジナル"}],
        "x_restrict": x_restrict,
        "meta_pages": [],
        "meta_single_page": {},
    }
    if pages == 1:
        payload["meta_single_page"] = {
            "original_image_url": f"https://i.pximg.net/img-original/{artwork_id}_p0.png"
        }
    else:
        payload["meta_pages"] = [
            {"image_urls": {"original": f"https://i.pximg.net/img-original/{artwork_id}_p{i}.png"}}
            for i in range(pages)
        ]
    return payload


class FakeStore:
    """In-memory last-seen store that counts writes."""

    def __init__(self, records: dict[str, str] | None = None) -> None:
        self.records = dict(records or {})
        self.upserts: list[tuple[str, str]] = []
        self.creates: list[tuple[str, str]] = []

    async def get(self, author_id: str) -> LastSeenRecord | None:
        if author_id not in self.records:
            return None
        return LastSeenRecord(author_id=author_id, last_artwork_id=self.records[author_id])

    async def upsert(self, author_id: str, last_artwork_id: str) -> None:
        self.upserts.append((author_id, last_artwork_id))
        self.records[author_id] = last_artwork_id

    async def create(self, author_id: str, last_artwork_id: str) -> bool:
        if author_id in self.records:
            return False
        self.creates.append((author_id, last_artwork_id))
        self.records[author_id] = last_artwork_id
        return True


class FakeSink:
    """Delivery sink recording what was sent; listed channels fail."""

    def __init__(
        self,
        platform: str = "discord",
        self_id: str = "999",
        online: bool = True,
        failing_channels: set[str] | None = None,
    ) -> None:
        self.platform = platform
        self.self_id = self_id
        self._online = online
        self.failing_channels = failing_channels or set()
        self.sent: list[tuple[str, Any]] = []

    @property
    def online(self) -> bool:
        return self._online

    async def send(self, channel_id: str, output: Any) -> list[str]:
        if channel_id in self.failing_channels:
            raise RuntimeError(f"channel {channel_id} unavailable")
        self.sent.append((channel_id, output))
        return [str(len(self.sent))]

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        return None


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(data_dir=tmp_path)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
