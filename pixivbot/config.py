"""Application configuration using Pydantic Settings"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pixivbot.services.credentials import DEFAULT_CLIENT_ID, DEFAULT_CLIENT_SECRET

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).parent
PROJECT_DIR = PACKAGE_DIR.parent

if str(PROJECT_DIR) == "/app":
    DEFAULT_DATA_DIR = Path("/app/data")
else:
    DEFAULT_DATA_DIR = PROJECT_DIR / "data"


class AuthorSubscription(BaseModel):
    """One subscribed author and the channels to push to."""

    uid: str
    name: str = ""
    channel_ids: list[str] = Field(default_factory=list)

    @field_validator("uid", mode="before")
    @classmethod
    def validate_uid(cls, v: object) -> str:
        value = str(v).strip() if v is not None else ""
        if value and not value.isdigit():
            raise ValueError(f"author uid must be numeric, got {value!r}")
        return value

    @field_validator("channel_ids", mode="before")
    @classmethod
    def coerce_channel_ids(cls, v: object) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str | int):
            v = [v]
        return [str(c).strip() for c in v if str(c).strip()]  # type: ignore[union-attr]


class Settings(BaseSettings):
    """Bot settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discord
    discord_bot_token: str = Field(default="", description="Discord bot token")
    discord_guild_id: str = Field(default="", description="Guild for fast slash command sync")
    command_prefix: str = Field(default="$", description="Prefix for text commands")

    # Database
    database_url: str = Field(default="", description="PostgreSQL database URL")

    # Pixiv account
    pixiv_refresh_token: str = Field(default="", description="Pixiv API refresh token")
    pixiv_phpsessid: str = Field(default="", description="pixiv.net PHPSESSID cookie for screenshots")
    pixiv_client_id: str = Field(default=DEFAULT_CLIENT_ID)
    pixiv_client_secret: str = Field(default=DEFAULT_CLIENT_SECRET)

    # Message content
    send_tags: bool = True
    send_author: bool = True
    send_link_with_command: bool = False
    r18_action: Literal["block", "warn", "send"] = Field(
        default="warn", description="How R-18/R-18G artworks are handled"
    )

    # Output modes
    forward_threshold: int = Field(default=3, ge=0, description="0 disables forward bundles")
    pdf_threshold: int = Field(default=10, ge=0, description="0 disables the image-count PDF trigger")
    auto_pdf_for_r18: bool = True
    pdf_password: str | None = None
    pdf_send_mode: Literal["buffer", "file"] = "buffer"
    pdf_file_grace_seconds: float = Field(default=5.0, ge=0)
    enable_compression: bool = True
    compression_quality: int = Field(default=80, ge=1, le=100)
    forward_platforms: list[str] = Field(default_factory=lambda: ["discord"])

    # Downloads
    download_concurrency: int = Field(default=4, ge=1, le=10)

    # Author page
    enable_uid_command: bool = True
    send_user_info_text: bool = True

    # Subscriptions
    enable_subscription: bool = False
    update_interval: int = Field(default=30, ge=1, description="Polling interval in minutes")
    push_bot_platform: str = "discord"
    push_bot_id: str | None = None
    subscriptions: list[AuthorSubscription] = Field(default_factory=list)

    # Runtime
    data_dir: Path = DEFAULT_DATA_DIR
    debug: bool = False
    log_level: str = Field(default="INFO", description="Logging level")
    health_host: str = "0.0.0.0"
    port: int = Field(default=8080, description="Health server port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("pdf_password")
    @classmethod
    def empty_password_is_none(cls, v: str | None) -> str | None:
        return v or None

    @model_validator(mode="after")
    def require_push_bot(self) -> Settings:
        if self.enable_subscription and not self.push_bot_id:
            raise ValueError("push_bot_id is required when enable_subscription is on")
        return self

    @property
    def temp_dir(self) -> Path:
        return self.data_dir / "temp" / "pixiv-parse"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
