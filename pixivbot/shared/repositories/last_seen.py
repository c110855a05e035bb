"""Repository for the pixiv_last_artworks table."""

from __future__ import annotations

import asyncpg

from pixivbot.shared.models import LastSeenRecord

_COLUMNS = "author_id, last_artwork_id, created_at, updated_at"


class LastSeenRepository:
    """Point reads and writes keyed by author id. No multi-row transactions."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get(self, author_id: str) -> LastSeenRecord | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM pixiv_last_artworks WHERE author_id = $1",
                author_id,
            )
            return LastSeenRecord(**dict(row)) if row else None

    async def upsert(self, author_id: str, last_artwork_id: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO pixiv_last_artworks (author_id, last_artwork_id)
                VALUES ($1, $2)
                ON CONFLICT (author_id) DO UPDATE SET
                    last_artwork_id = EXCLUDED.last_artwork_id,
                    updated_at      = NOW()
                """,
                author_id,
                last_artwork_id,
            )

    async def create(self, author_id: str, last_artwork_id: str) -> bool:
        """Insert a first record. Returns False if one already existed."""
        async with self.pool.acquire() as conn:
            result: str = await conn.execute(
                """
                INSERT INTO pixiv_last_artworks (author_id, last_artwork_id)
                VALUES ($1, $2)
                ON CONFLICT (author_id) DO NOTHING
                """,
                author_id,
                last_artwork_id,
            )
            return result == "INSERT 0 1"
