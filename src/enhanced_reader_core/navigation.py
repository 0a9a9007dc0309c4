from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class NavItem:
    href: str | None = None
    label: str | None = None
    text: str | None = None

    @property
    def title(self) -> str | None:
        return self.label or self.text or None


class Navigation(Protocol):
    @property
    def toc(self) -> Sequence[NavItem]: ...

    def get(self, href: str) -> NavItem | None: ...


@dataclass(frozen=True)
class TableOfContents:
    items: tuple[NavItem, ...] = field(default_factory=tuple)

    @property
    def toc(self) -> Sequence[NavItem]:
        return self.items

    def get(self, href: str) -> NavItem | None:
        for item in self.items:
            if item.href == href:
                return item
        return None


def resolve_section_label(navigation: Navigation | None, href: str | None) -> str | None:
    """
    Best-effort chapter label for a section href; falls back to the href itself.
    """
    if not href:
        return None
    if navigation is None:
        return href

    normalized = href[1:] if href.startswith("/") else href
    for item in navigation.toc or ():
        item_href = item.href or ""
        if item_href and (item_href == href or item_href == normalized or item_href.endswith(normalized)):
            return item.title or href

    entry = navigation.get(normalized) or navigation.get(href)
    if entry is not None:
        return entry.title or href
    return href
