"""Last-seen artwork model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class LastSeenRecord:
    author_id: str
    last_artwork_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
