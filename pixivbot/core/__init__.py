"""Core modules for the Discord bot."""

from .discord_sink import DiscordSink, build_messages, send_output
from .health_server import HealthCheckServer
from .logging import setup_logging

__all__ = [
    "DiscordSink",
    "HealthCheckServer",
    "build_messages",
    "send_output",
    "setup_logging",
]
