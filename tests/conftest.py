from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest

from enhanced_reader_core.models import Annotation


class _Handle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock with asyncio's `call_later` shape."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[tuple[float, int, Callable[[], Any], _Handle]] = []
        self._seq = 0

    def call_later(self, delay: float, callback: Callable[[], Any]) -> _Handle:
        handle = _Handle()
        self._seq += 1
        self._timers.append((self.now + delay, self._seq, callback, handle))
        return handle

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t[3].cancelled and t[0] <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t[0], t[1]))
            self._timers.remove(timer)
            self.now = timer[0]
            timer[2]()
        self._timers = [t for t in self._timers if not t[3].cancelled]
        self.now = target

    @property
    def pending_count(self) -> int:
        return len([t for t in self._timers if not t[3].cancelled])


class FakeRendition:
    def __init__(self) -> None:
        self.marked: list[str] = []
        self.unmarked: list[str] = []
        self.handlers: dict[str, list[Callable[..., Any]]] = {}
        # identifier -> number of upcoming mark() calls that should fail
        self.failures: dict[str, float] = {}

    def mark(self, identifier: str, annotation: Annotation) -> None:
        remaining = self.failures.get(identifier, 0)
        if remaining > 0:
            self.failures[identifier] = remaining - 1
            raise RuntimeError(f"range not laid out: {identifier}")
        self.marked.append(identifier)

    def unmark(self, identifier: str) -> None:
        self.unmarked.append(identifier)

    def on(self, event: str, handler: Callable[..., Any]) -> Callable[[], None]:
        self.handlers.setdefault(event, []).append(handler)

        def dispose() -> None:
            self.handlers[event].remove(handler)

        return dispose

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self.handlers.get(event, [])):
            handler(*args)


@dataclass
class FakeContents:
    text: str
    section_href: str | None = None

    def selected_text(self) -> str:
        return self.text


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def rendition() -> FakeRendition:
    return FakeRendition()


@pytest.fixture()
def make_contents() -> Callable[..., FakeContents]:
    return FakeContents


@pytest.fixture()
def make_annotation() -> Callable[..., Annotation]:
    def make(identifier: str, content: str = "text", **kwargs: Any) -> Annotation:
        return Annotation(identifier=identifier, content=content, created_at="2024-01-01T00:00:00+00:00", **kwargs)

    return make
