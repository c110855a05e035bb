"""Platform-neutral message payloads produced by the renderer."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OutputKind(str, Enum):
    SKIP = "skip"  # nothing to send (silent path)
    NOTICE = "notice"  # quoted text reply: not found, blocked, failure
    WARNING = "warning"  # R-18 warning, text only
    NO_CONTENT = "no_content"
    PDF = "pdf"
    FORWARD = "forward"
    PLAIN = "plain"


@dataclass(frozen=True)
class TextElement:
    text: str


@dataclass(frozen=True)
class ImageElement:
    filename: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class FileElement:
    """A document attachment, either held in memory or on disk."""

    filename: str
    data: bytes | None = field(default=None, repr=False)
    path: Path | None = None
    mime_type: str = "application/pdf"


@dataclass(frozen=True)
class BundleElement:
    """Forward bundle: several elements shown as one collapsible unit."""

    elements: tuple[TextElement | ImageElement, ...]


Element = TextElement | ImageElement | FileElement | BundleElement


@dataclass
class RenderedOutput:
    kind: OutputKind
    elements: list[Element] = field(default_factory=list)
    on_release: Callable[[], None] | None = field(default=None, repr=False, compare=False)

    def release(self) -> None:
        """Hand temporary files back for removal. Call after the last send."""
        callback, self.on_release = self.on_release, None
        if callback is not None:
            callback()

    @property
    def deliverable(self) -> bool:
        """True when there is artwork content to push."""
        return self.kind in (OutputKind.PDF, OutputKind.FORWARD, OutputKind.PLAIN)

    @classmethod
    def skip(cls) -> RenderedOutput:
        return cls(OutputKind.SKIP)

    @classmethod
    def notice(cls, text: str) -> RenderedOutput:
        return cls(OutputKind.NOTICE, [TextElement(text)])

    @property
    def text(self) -> str:
        """Concatenated text of the top-level and bundled text elements."""
        parts: list[str] = []
        for element in self.elements:
            if isinstance(element, TextElement):
                parts.append(element.text)
            elif isinstance(element, BundleElement):
                parts.extend(e.text for e in element.elements if isinstance(e, TextElement))
        return "\n".join(parts)
