from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from enhanced_reader_core.models import Annotation

SELECTED = "selected"
LOCATION_CHANGED = "locationChanged"

Disposer = Callable[[], None]


class Contents(Protocol):
    """Handle on the rendered content that produced a selection."""

    section_href: str | None

    def selected_text(self) -> str: ...


class Rendition(Protocol):
    def mark(self, identifier: str, annotation: Annotation) -> None: ...

    def unmark(self, identifier: str) -> None: ...

    def on(self, event: str, handler: Callable[..., Any]) -> Disposer: ...


def location_identifier(location: object) -> str:
    """
    Pull the current CFI out of a location event payload.

    Accepts a plain string, or an object/dict whose `start` is either a
    `{cfi: ...}` holder or something that stringifies to the CFI.
    """
    if location is None:
        return ""
    if isinstance(location, str):
        return location
    start = location.get("start") if isinstance(location, dict) else getattr(location, "start", None)
    if start is None:
        return ""
    cfi = start.get("cfi") if isinstance(start, dict) else getattr(start, "cfi", None)
    if isinstance(cfi, str) and cfi:
        return cfi
    if isinstance(start, str):
        return start
    if isinstance(start, dict):
        return ""
    return str(start)
