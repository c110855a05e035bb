"""Pixiv app API client.

Accessors never raise for a missing entity or a network problem; they log
and return ``None`` / ``[]`` so one bad artwork cannot take down a command or
a subscription cycle. ``AuthError`` is the exception: it is surfaced so the
caller can tell the user the bot is not logged in.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from pixivbot.shared.models import Artwork, AuthorProfile, DownloadedImage

from .credentials import CredentialManager
from .errors import AuthError, PixivError

logger = logging.getLogger(__name__)

APP_API_BASE = "https://app-api.pixiv.net"
IMAGE_REFERER = "https://www.pixiv.net/"


class PixivClient:
    """Typed accessors over :class:`CredentialManager`."""

    def __init__(
        self,
        credentials: CredentialManager,
        http: httpx.AsyncClient,
        *,
        download_concurrency: int = 4,
        download_timeout: float = 60.0,
        debug: bool = False,
    ) -> None:
        self.credentials = credentials
        self._http = http
        self.download_concurrency = max(1, download_concurrency)
        self.download_timeout = download_timeout
        self.debug = debug

    def _log_soft_failure(self, what: str, error: Exception) -> None:
        level = logging.WARNING if self.debug else logging.DEBUG
        logger.log(level, f"{what} failed: {type(error).__name__}: {error}")

    async def _request(self, path: str, params: dict[str, Any]) -> Any:
        return await self.credentials.authorized_request(f"{APP_API_BASE}{path}", params)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_artwork_detail(self, artwork_id: str) -> Artwork | None:
        try:
            data = await self._request(
                "/v1/illust/detail", {"illust_id": artwork_id, "filter": "for_ios"}
            )
            return Artwork.from_api(data["illust"])
        except AuthError:
            raise
        except (PixivError, KeyError, TypeError, ValueError, AttributeError) as e:
            self._log_soft_failure(f"Artwork detail (PID: {artwork_id})", e)
            return None

    async def get_user_detail(self, user_id: str) -> AuthorProfile | None:
        try:
            data = await self._request("/v1/user/detail", {"user_id": user_id})
            return AuthorProfile.from_api(data)
        except AuthError:
            raise
        except (PixivError, KeyError, TypeError, ValueError, AttributeError) as e:
            self._log_soft_failure(f"User detail (UID: {user_id})", e)
            return None

    async def get_user_artworks(self, user_id: str) -> list[Artwork]:
        try:
            data = await self._request(
                "/v1/user/illusts", {"user_id": user_id, "filter": "for_ios"}
            )
            return [Artwork.from_api(item) for item in data.get("illusts") or []]
        except AuthError:
            raise
        except (PixivError, KeyError, TypeError, ValueError, AttributeError) as e:
            self._log_soft_failure(f"User artworks (UID: {user_id})", e)
            return []

    # ------------------------------------------------------------------
    # Images (CDN, no bearer token)
    # ------------------------------------------------------------------

    async def download_image(self, url: str) -> bytes | None:
        try:
            response = await self._http.get(
                url,
                headers={"Referer": IMAGE_REFERER},
                timeout=self.download_timeout,
            )
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            logger.warning(f"Image download failed (URL: {url}): {type(e).__name__}: {e}")
            return None

    async def download_images(self, urls: list[str] | tuple[str, ...]) -> list[DownloadedImage]:
        """Download ``urls`` with bounded concurrency, keeping index order.

        Failed downloads are dropped from the result.
        """
        semaphore = asyncio.Semaphore(self.download_concurrency)

        async def fetch(index: int, url: str) -> DownloadedImage | None:
            async with semaphore:
                data = await self.download_image(url)
            if data is None:
                return None
            return DownloadedImage(index=index, url=url, data=data)

        results = await asyncio.gather(*(fetch(i, u) for i, u in enumerate(urls)))
        return [image for image in results if image is not None]
