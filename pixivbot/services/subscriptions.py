"""Author subscription polling.

One cycle walks the configured authors sequentially, compares each author's
newest artwork id with the stored last-seen id and pushes new artworks to the
author's channels. The stored id is for deduplication against the API, not a
delivery receipt: it is advanced even when every channel failed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from pixivbot.shared.models import Artwork, LastSeenRecord, RenderedOutput

from .delivery import DeliverySink, find_bot
from .handler import ArtworkRequestHandler
from .pixiv_api import PixivClient
from .renderer import RequestSource

if TYPE_CHECKING:
    from pixivbot.config import AuthorSubscription, Settings

logger = logging.getLogger(__name__)


class LastSeenStore(Protocol):
    async def get(self, author_id: str) -> LastSeenRecord | None: ...

    async def upsert(self, author_id: str, last_artwork_id: str) -> None: ...

    async def create(self, author_id: str, last_artwork_id: str) -> bool: ...


def latest_artwork_id(artworks: list[Artwork]) -> str | None:
    """Newest id in a listing, by numeric value rather than list position."""
    if not artworks:
        return None
    ids = [a.id for a in artworks]
    if all(i.isdigit() for i in ids):
        return max(ids, key=int)
    return ids[0]


def is_newer(latest: str, recorded: str) -> bool:
    if latest.isdigit() and recorded.isdigit():
        return int(latest) > int(recorded)
    return latest != recorded


class SubscriptionTracker:
    def __init__(
        self,
        settings: Settings,
        client: PixivClient,
        handler: ArtworkRequestHandler,
        store: LastSeenStore,
        bots: Callable[[], Iterable[DeliverySink]],
    ) -> None:
        self.settings = settings
        self.client = client
        self.handler = handler
        self.store = store
        self._bots = bots
        self.last_cycle_at: datetime | None = None

    def _trace(self, message: str) -> None:
        logger.log(logging.INFO if self.settings.debug else logging.DEBUG, f"[Subscription] {message}")

    @property
    def bot_identifier(self) -> str:
        return f"{self.settings.push_bot_platform}:{self.settings.push_bot_id}"

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def reconcile(self) -> int:
        """Seed a record for every author that has none, without pushing.

        Keeps a newly added author's back catalogue from being announced.
        Returns the number of records created.
        """
        created = 0
        self._trace("Initializing last-seen ids...")
        for sub in self.settings.subscriptions:
            if not sub.uid:
                continue
            try:
                if await self.store.get(sub.uid) is not None:
                    continue
                latest = latest_artwork_id(await self.client.get_user_artworks(sub.uid))
                if latest is None:
                    continue
                if await self.store.create(sub.uid, latest):
                    created += 1
                    self._trace(f"Seeded {sub.name} (UID: {sub.uid}) at {latest}")
            except Exception as e:
                logger.error(f"[Subscription] Failed to seed {sub.name} (UID: {sub.uid}): {e}")
        self._trace("Initialization complete")
        return created

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def check_and_push(self, manual: bool = False) -> str | None:
        """Run one polling cycle. Manual runs return a summary for the operator."""
        if not self.settings.enable_subscription:
            return "訂閱功能未啟用。" if manual else None

        self._trace("Checking for updates...")
        bot = find_bot(self._bots(), self.settings.push_bot_platform, self.settings.push_bot_id)
        if bot is None:
            logger.warning(
                f"[Subscription] Bot [{self.bot_identifier}] not found or offline, skipping cycle"
            )
            return f"設定中指定的機器人 [{self.bot_identifier}] 不存在或不在線。" if manual else None

        pushed = 0
        for sub in self.settings.subscriptions:
            if not sub.uid or not sub.channel_ids:
                continue
            try:
                if await self._check_author(sub, bot, manual):
                    pushed += 1
            except Exception as e:
                logger.error(
                    f"[Subscription] Error checking {sub.name} (UID: {sub.uid}): {e}", exc_info=e
                )

        self.last_cycle_at = datetime.now(UTC)
        self._trace(f"Cycle finished, pushed {pushed} update(s)")
        if manual:
            return f"手動檢查完成，共為 {pushed} 個訂閱執行了推送任務。"
        return None

    async def _check_author(self, sub: AuthorSubscription, bot: DeliverySink, manual: bool) -> bool:
        self._trace(f"Checking author: {sub.name} (UID: {sub.uid})")

        artworks = await self.client.get_user_artworks(sub.uid)
        latest = latest_artwork_id(artworks)
        if latest is None:
            self._trace(f"No artworks returned for {sub.name}, skipping")
            return False

        record = await self.store.get(sub.uid)
        recorded = record.last_artwork_id if record else None
        is_new = recorded is None or is_newer(latest, recorded)
        should_push = is_new or manual
        self._trace(
            f"latest={latest} recorded={recorded or '-'} "
            f"is_new={is_new} manual={manual} should_push={should_push}"
        )

        pushed = False
        if should_push:
            logger.info(f"[Subscription] New artwork from [{sub.name}] or manual trigger: {latest}")
            output = await self.handler.handle_artwork_request(
                latest, source=RequestSource.LINK, silent=True, platform=bot.platform
            )
            try:
                if output.deliverable:
                    pushed = True
                    await self._deliver(sub, bot, output)
                else:
                    logger.warning(
                        f"[Subscription] Artwork {latest} produced no content, not pushed"
                    )
            finally:
                output.release()

        if is_new:
            await self.store.upsert(sub.uid, latest)
            self._trace(f"Stored last-seen id for {sub.uid}: {latest}")

        return pushed

    async def _deliver(
        self, sub: AuthorSubscription, bot: DeliverySink, output: RenderedOutput
    ) -> None:
        for channel_id in sub.channel_ids:
            try:
                await bot.send(channel_id, output)
            except Exception as e:
                logger.warning(
                    f"[Subscription] Push to channel {channel_id} failed "
                    f"(bot {self.bot_identifier}): {type(e).__name__}: {e}"
                )
