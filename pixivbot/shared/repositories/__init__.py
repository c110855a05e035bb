"""Repository layer for pixivbot."""

from .last_seen import LastSeenRepository

__all__ = ["LastSeenRepository"]
