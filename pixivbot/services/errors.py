"""Exception taxonomy for the Pixiv service layer."""

from __future__ import annotations


class PixivError(Exception):
    """Base class for every error raised by the Pixiv services."""


class AuthError(PixivError):
    """Refresh credential missing, or the token exchange was rejected."""


class TransportError(PixivError):
    """Network failure or timeout while talking to Pixiv."""


class ApiError(PixivError):
    """Pixiv answered with a non-2xx status."""

    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(f"HTTP {status}: {message}" if message else f"HTTP {status}")
        self.status = status
        self.message = message

    @property
    def is_invalid_token(self) -> bool:
        # Pixiv reports expired tokens as 400 + invalid_grant / invalid_token
        text = self.message.lower()
        return self.status == 400 and ("invalid_grant" in text or "invalid_token" in text)


class NotFoundError(ApiError):
    """The requested artwork or user does not exist."""


class RenderError(PixivError):
    """Building the PDF or processing an image failed."""
