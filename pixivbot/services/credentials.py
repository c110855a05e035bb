"""Pixiv OAuth credential manager.

Holds the short-lived access token, exchanges the long-lived refresh token
for a new one when needed, and retries a rejected request exactly once after
re-authenticating.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import ApiError, AuthError, NotFoundError, TransportError

logger = logging.getLogger(__name__)

OAUTH_TOKEN_URL = "https://oauth.secure.pixiv.net/auth/token"

# Public client credentials of the official iOS app
DEFAULT_CLIENT_ID = "MOBrBDS8blbauoSck0ZfDbtuzpyT"
DEFAULT_CLIENT_SECRET = "lsACyCD94FhDUtGTXi3QzcFE2uU1hqtDaKeqrdwj"

CLIENT_HEADERS = {
    "app-os": "ios",
    "app-os-version": "14.6",
    "user-agent": "PixivIOSApp/7.13.3 (iOS 14.6; iPhone13,2)",
    "Referer": "https://www.pixiv.net/",
}


@dataclass
class CredentialState:
    """Token state owned by one CredentialManager."""

    refresh_token: str | None
    client_id: str = DEFAULT_CLIENT_ID
    client_secret: str = DEFAULT_CLIENT_SECRET
    access_token: str | None = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("user_message") or error)
        if error:
            return str(error)
    return str(body)[:200]


def api_error_from_response(response: httpx.Response) -> ApiError:
    message = _error_message(response)
    if response.status_code == 404:
        return NotFoundError(response.status_code, message)
    return ApiError(response.status_code, message)


class CredentialManager:
    """Authorized access to the Pixiv app API.

    The only mutable state is ``state.access_token``; refreshes are serialized
    through a lock so concurrent requests never race on it.
    """

    def __init__(
        self,
        state: CredentialState,
        http: httpx.AsyncClient,
        *,
        token_timeout: float = 15.0,
        request_timeout: float = 30.0,
    ) -> None:
        self.state = state
        self._http = http
        self.token_timeout = token_timeout
        self.request_timeout = request_timeout
        self._refresh_lock = asyncio.Lock()

    @property
    def access_token(self) -> str | None:
        return self.state.access_token

    # ------------------------------------------------------------------
    # Token exchange
    # ------------------------------------------------------------------

    async def _exchange(self) -> str:
        """Run one refresh-token grant. Caller must hold the refresh lock."""
        if not self.state.refresh_token:
            self.state.access_token = None
            logger.warning("No Pixiv refresh token configured, cannot authenticate")
            raise AuthError("Pixiv refresh token is not configured")

        try:
            response = await self._http.post(
                OAUTH_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.state.client_id,
                    "client_secret": self.state.client_secret,
                    "refresh_token": self.state.refresh_token,
                    "get_secure_url": "true",
                },
                headers=CLIENT_HEADERS,
                timeout=self.token_timeout,
            )
        except httpx.HTTPError as e:
            self.state.access_token = None
            logger.error(f"Access token refresh failed: {type(e).__name__}: {e}")
            raise AuthError(f"token exchange failed: {type(e).__name__}") from e

        if response.status_code != 200:
            self.state.access_token = None
            message = _error_message(response)
            logger.error(f"Access token refresh rejected: HTTP {response.status_code} {message}")
            raise AuthError(f"token exchange rejected: {message}")

        try:
            data: dict[str, Any] = response.json()
        except ValueError:
            data = {}

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            self.state.access_token = None
            logger.error("No access_token in refresh response")
            raise AuthError("token exchange returned no access_token")

        self.state.access_token = str(access_token)
        # Pixiv may rotate the refresh token
        if data.get("refresh_token"):
            self.state.refresh_token = str(data["refresh_token"])
        logger.debug("Access token refreshed")
        return self.state.access_token

    async def ensure_token(self) -> str:
        """Return the held access token, refreshing first if there is none."""
        if self.state.access_token:
            return self.state.access_token

        async with self._refresh_lock:
            # Another request may have refreshed while we waited
            if self.state.access_token:
                return self.state.access_token
            return await self._exchange()

    async def _refresh_after_rejection(self, rejected_token: str | None) -> str:
        async with self._refresh_lock:
            current = self.state.access_token
            if current and current != rejected_token:
                return current
            return await self._exchange()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _get(self, url: str, params: dict[str, Any] | None, token: str) -> Any:
        headers = {**CLIENT_HEADERS, "Authorization": f"Bearer {token}"}
        try:
            response = await self._http.get(
                url, params=params, headers=headers, timeout=self.request_timeout
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"timeout requesting {url}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise api_error_from_response(response)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(response.status_code, "malformed JSON response") from e

    async def authorized_request(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` with the bearer token, retrying once on an invalid token.

        Raises AuthError if no token can be obtained. If the retry fails, the
        retry's error is raised; if the refresh fails, the original one is.
        """
        token = await self.ensure_token()
        try:
            return await self._get(url, params, token)
        except ApiError as error:
            if not error.is_invalid_token:
                raise
            logger.info("Access token rejected, forcing refresh")
            try:
                token = await self._refresh_after_rejection(token)
            except AuthError:
                raise error from None
            logger.info("Refresh succeeded, retrying request")
            return await self._get(url, params, token)
