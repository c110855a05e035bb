"""Author page screenshots via a headless Chromium."""

from __future__ import annotations

import asyncio
import logging

from playwright.async_api import Browser, Playwright, async_playwright

logger = logging.getLogger(__name__)

USER_PAGE_URL = "https://www.pixiv.net/users/{uid}"


class ScreenshotService:
    """Lazily launched browser shared by every screenshot request."""

    def __init__(
        self,
        phpsessid: str | None = None,
        *,
        timeout: float = 30.0,
        settle_delay: float = 2.0,
        debug: bool = False,
    ) -> None:
        self.phpsessid = phpsessid
        self.timeout = timeout
        self.settle_delay = settle_delay
        self.debug = debug
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._launch_lock = asyncio.Lock()

    async def _get_browser(self) -> Browser:
        async with self._launch_lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=True)
                logger.info("Headless browser launched")
            return self._browser

    async def _capture(self, uid: str) -> bytes:
        browser = await self._get_browser()
        context = await browser.new_context(viewport={"width": 1280, "height": 900})
        try:
            if self.phpsessid:
                await context.add_cookies(
                    [
                        {
                            "name": "PHPSESSID",
                            "value": self.phpsessid,
                            "domain": ".pixiv.net",
                            "path": "/",
                        }
                    ]
                )
                if self.debug:
                    logger.info("[Screenshot] PHPSESSID cookie set")
            else:
                logger.warning("[Screenshot] PHPSESSID not configured, page may hit the login wall")

            page = await context.new_page()
            await page.goto(USER_PAGE_URL.format(uid=uid), wait_until="networkidle")
            await asyncio.sleep(self.settle_delay)
            if self.debug:
                logger.info("[Screenshot] page loaded, capturing full page")
            return await page.screenshot(type="png", full_page=True)
        finally:
            await context.close()

    async def take_user_page(self, uid: str) -> bytes | None:
        """Full-page PNG of the author's profile, or None on any failure."""
        try:
            return await asyncio.wait_for(self._capture(uid), timeout=self.timeout)
        except Exception as e:
            logger.error(f"[Screenshot] failed (UID: {uid}): {type(e).__name__}: {e}")
            return None

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
