from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


class Debouncer:
    """
    Trailing-edge debounce.

    Each call drops the pending timer and starts a new one, so the wrapped
    function runs once, `delay_s` after the last call of a burst, with that
    call's arguments. Timers come from `scheduler` (anything with asyncio's
    `call_later`), defaulting to the running event loop.
    """

    def __init__(self, fn: Callable[..., Any], delay_s: float, *, scheduler: Scheduler | None = None):
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self._fn = fn
        self.delay_s = delay_s
        self._scheduler = scheduler
        self._handle: TimerHandle | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        self._args = args
        self._kwargs = kwargs
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._handle = scheduler.call_later(self.delay_s, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Run the pending call now, if there is one."""
        if self._handle is None:
            return
        self.cancel()
        self._invoke()

    def _fire(self) -> None:
        self._handle = None
        self._invoke()

    def _invoke(self) -> None:
        args, kwargs = self._args, self._kwargs
        self._args, self._kwargs = (), {}
        self._fn(*args, **kwargs)

