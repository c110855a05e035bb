"""Artwork and author data parsed from the Pixiv app API."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|]')
_TAG_RE = re.compile(r"<[^>]*>")


class Restriction(str, Enum):
    NONE = "none"
    R18 = "r18"
    R18G = "r18g"

    @classmethod
    def from_x_restrict(cls, value: Any) -> Restriction:
        try:
            level = int(value or 0)
        except (TypeError, ValueError):
            level = 0
        if level >= 2:
            return cls.R18G
        if level == 1:
            return cls.R18
        return cls.NONE


@dataclass(frozen=True)
class Artwork:
    """A single illust, as returned by /v1/illust/detail or /v1/user/illusts."""

    id: str
    title: str
    author_id: str
    author_name: str
    tags: tuple[str, ...] = ()
    restriction: Restriction = Restriction.NONE
    image_urls: tuple[str, ...] = ()

    @property
    def is_r18(self) -> bool:
        return self.restriction is not Restriction.NONE

    @property
    def safe_title(self) -> str:
        """Title usable as a file name."""
        return _UNSAFE_FILENAME_RE.sub("_", self.title or self.id)

    @classmethod
    def from_api(cls, illust: dict[str, Any]) -> Artwork:
        """Build from an ``illust`` object. Raises KeyError/TypeError on malformed input."""
        user = illust["user"]

        meta_pages = illust.get("meta_pages") or []
        if meta_pages:
            urls = [page["image_urls"]["original"] for page in meta_pages]
        else:
            single = (illust.get("meta_single_page") or {}).get("original_image_url")
            urls = [single] if single else []

        return cls(
            id=str(illust["id"]),
            title=str(illust.get("title") or ""),
            author_id=str(user["id"]),
            author_name=str(user.get("name") or ""),
            tags=tuple(str(t["name"]) for t in illust.get("tags") or [] if t.get("name")),
            restriction=Restriction.from_x_restrict(illust.get("x_restrict")),
            image_urls=tuple(urls),
        )


@dataclass(frozen=True)
class AuthorProfile:
    """User detail payload used by the uid command."""

    id: str
    name: str
    account: str
    total_follow_users: int = 0
    total_illusts: int = 0
    total_manga: int = 0
    comment: str = ""

    @property
    def total_works(self) -> int:
        return self.total_illusts + self.total_manga

    @property
    def clean_comment(self) -> str:
        """Bio with <br /> turned into newlines and other markup dropped."""
        return _TAG_RE.sub("", self.comment.replace("<br />", "\n")).strip()

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> AuthorProfile:
        user = payload["user"]
        profile = payload.get("profile") or {}
        return cls(
            id=str(user["id"]),
            name=str(user.get("name") or ""),
            account=str(user.get("account") or ""),
            total_follow_users=int(profile.get("total_follow_users") or 0),
            total_illusts=int(profile.get("total_illusts") or 0),
            total_manga=int(profile.get("total_manga") or 0),
            comment=str(user.get("comment") or profile.get("comment") or ""),
        )


@dataclass(frozen=True)
class DownloadedImage:
    """Raw image bytes together with their position in the artwork."""

    index: int
    url: str
    data: bytes = field(repr=False)

    @property
    def extension(self) -> str:
        suffix = PurePosixPath(urlparse(self.url).path).suffix.lower()
        if suffix in {".jpg", ".jpeg", ".png", ".gif", ".webp"}:
            return ".jpg" if suffix == ".jpeg" else suffix
        return ".jpg"
