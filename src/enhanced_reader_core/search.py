from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from enhanced_reader_core.config import Settings
from enhanced_reader_core.navigation import Navigation, resolve_section_label

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 100
EXCERPT_LIMIT = 180


@dataclass(frozen=True)
class BookMatch:
    """A raw hit as reported by the rendering engine's book or spine search."""

    cfi: str | None
    excerpt: str | None = None
    chapter_label: str | None = None
    chapter_href: str | None = None
    href: str | None = None


@dataclass(frozen=True)
class SearchResult:
    cfi: str
    excerpt: str
    chapter: str | None = None


class SpineItem(Protocol):
    href: str | None

    async def load(self) -> None: ...

    async def find(self, query: str) -> Sequence[BookMatch]: ...

    def unload(self) -> None: ...


class Book(Protocol):
    """
    A loaded book. Engines that can search the whole book at once also expose
    `async find(query) -> Sequence[BookMatch]`; the spine is searched either way.
    """

    @property
    def spine_items(self) -> Sequence[SpineItem]: ...


class SearchMarker(Protocol):
    def underline(self, identifier: str) -> None: ...

    def remove_underline(self, identifier: str) -> None: ...


def truncate_excerpt(value: str, limit: int = EXCERPT_LIMIT) -> str:
    normalized = " ".join(value.split())
    if len(normalized) <= limit:
        return normalized
    return normalized[: limit - 3] + "…"


def _to_result(match: BookMatch, navigation: Navigation | None, href: str | None) -> SearchResult | None:
    if not match.cfi:
        return None
    chapter = match.chapter_label
    if chapter is None:
        chapter = resolve_section_label(navigation, match.chapter_href or href or match.href)
    return SearchResult(
        cfi=match.cfi,
        excerpt=truncate_excerpt(match.excerpt) if match.excerpt else "",
        chapter=chapter,
    )


def _collect(
    results: list[SearchResult],
    seen: set[str],
    matches: Iterable[BookMatch] | None,
    navigation: Navigation | None,
    href: str | None,
    limit: int,
) -> None:
    for match in matches or ():
        result = _to_result(match, navigation, href)
        if result is None or result.cfi in seen:
            continue
        seen.add(result.cfi)
        results.append(result)
        if len(results) >= limit:
            return


async def search_book(
    book: Book,
    query: str,
    *,
    navigation: Navigation | None = None,
    limit: int = SEARCH_RESULT_LIMIT,
) -> list[SearchResult]:
    """
    Full-text search over a book, capped at `limit` results.

    The book-wide `find` runs first when the engine has one, then each spine
    item is loaded, searched and unloaded in turn. A failing item is logged
    and skipped. Hits already reported under the same CFI are dropped.
    """
    normalized = query.strip()
    if not normalized:
        return []

    results: list[SearchResult] = []
    seen: set[str] = set()

    find = getattr(book, "find", None)
    if callable(find):
        try:
            _collect(results, seen, await find(normalized), navigation, None, limit)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Book-wide search failed: {e}")
        if len(results) >= limit:
            return results

    for item in book.spine_items:
        if len(results) >= limit:
            break
        try:
            await item.load()
            _collect(results, seen, await item.find(normalized), navigation, item.href, limit)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Spine search failed for {item.href}: {e}")
        finally:
            try:
                item.unload()
            except Exception as e:  # noqa: BLE001
                logger.debug(f"Failed to unload spine item {item.href}: {e}")

    logger.debug(f"Search for {normalized!r} found {len(results)} results")
    return results


class BookSearcher:
    """Runs searches against one book and keeps at most one result underlined."""

    def __init__(
        self,
        book: Book,
        *,
        marker: SearchMarker | None = None,
        navigation: Navigation | None = None,
        limit: int = SEARCH_RESULT_LIMIT,
    ):
        self._book = book
        self._marker = marker
        self._navigation = navigation
        self._limit = limit
        self.active: str | None = None

    @classmethod
    def from_settings(
        cls,
        book: Book,
        settings: Settings,
        *,
        marker: SearchMarker | None = None,
        navigation: Navigation | None = None,
    ) -> BookSearcher:
        return cls(book, marker=marker, navigation=navigation, limit=settings.search_result_limit)

    async def search(self, query: str) -> list[SearchResult]:
        self.clear()
        return await search_book(self._book, query, navigation=self._navigation, limit=self._limit)

    def show(self, result: SearchResult) -> bool:
        self.clear()
        if self._marker is None:
            return False
        try:
            self._marker.underline(result.cfi)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Failed to annotate search result {result.cfi}: {e}")
            return False
        self.active = result.cfi
        return True

    def clear(self) -> None:
        if self.active is None or self._marker is None:
            self.active = None
            return
        try:
            self._marker.remove_underline(self.active)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Failed to remove search annotation: {e}")
        self.active = None
