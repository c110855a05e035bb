"""HTTP health check server"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from aiohttp import web

if TYPE_CHECKING:
    from pixivbot.services.subscriptions import SubscriptionTracker

logger = logging.getLogger(__name__)


class HealthCheckServer:
    """Liveness and status endpoints for container orchestration."""

    def __init__(
        self,
        bot: Any = None,
        host: str = "0.0.0.0",
        port: int = 8080,
        tracker: SubscriptionTracker | None = None,
    ) -> None:
        self.bot = bot
        self.host = host
        self.port = port
        self.tracker = tracker
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time = time.time()
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)
        self.app.router.add_get("/ping", self.handle_ping)

    def _ready(self) -> bool:
        return self.bot is not None and self.bot.is_ready()

    async def handle_health(self, request: web.Request) -> web.Response:
        """Always 200 so the process is not restarted while connecting"""
        ready = self._ready()
        return web.json_response({"status": "healthy" if ready else "starting", "ready": ready})

    async def handle_status(self, request: web.Request) -> web.Response:
        ready = self._ready()
        last_cycle = self.tracker.last_cycle_at if self.tracker else None
        return web.json_response(
            {
                "service": "pixivbot",
                "bot_id": str(self.bot.user.id) if ready and self.bot.user else None,
                "uptime_seconds": int(time.time() - self._start_time),
                "subscription_enabled": self.tracker is not None
                and self.tracker.settings.enable_subscription,
                "last_subscription_cycle": last_cycle.isoformat() if last_cycle else None,
            }
        )

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"Health server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health server stopped")
