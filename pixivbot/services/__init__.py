"""Services layer - Pixiv access, rendering and subscription logic.

Services are constructed once by the bot with their dependencies and shared
by the cogs.
"""

from .credentials import CredentialManager, CredentialState
from .delivery import DeliverySink, find_bot
from .errors import ApiError, AuthError, NotFoundError, PixivError, RenderError, TransportError
from .handler import ArtworkRequestHandler
from .pixiv_api import PixivClient
from .renderer import OutputRenderer, RequestSource
from .subscriptions import SubscriptionTracker

__all__ = [
    "ApiError",
    "ArtworkRequestHandler",
    "AuthError",
    "CredentialManager",
    "CredentialState",
    "DeliverySink",
    "NotFoundError",
    "OutputRenderer",
    "PixivClient",
    "PixivError",
    "RenderError",
    "RequestSource",
    "SubscriptionTracker",
    "TransportError",
    "find_bot",
]
