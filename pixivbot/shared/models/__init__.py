"""Shared data models for pixivbot."""

from .artwork import Artwork, AuthorProfile, DownloadedImage, Restriction
from .last_seen import LastSeenRecord
from .message import (
    BundleElement,
    Element,
    FileElement,
    ImageElement,
    OutputKind,
    RenderedOutput,
    TextElement,
)

__all__ = [
    "Artwork",
    "AuthorProfile",
    "BundleElement",
    "DownloadedImage",
    "Element",
    "FileElement",
    "ImageElement",
    "LastSeenRecord",
    "OutputKind",
    "RenderedOutput",
    "Restriction",
    "TextElement",
]
