from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Protocol

logger = logging.getLogger("voicebed.playback")

FrameCallback = Callable[[], None]


class FrameHandle:
    __slots__ = ("callback", "cancelled", "timer")

    def __init__(self, callback: FrameCallback) -> None:
        self.callback = callback
        self.cancelled = False
        self.timer: Any | None = None

    def fire(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        try:
            self.callback()
        except Exception:
            logger.exception("frame callback failed")


class FrameDriver(Protocol):
    """Schedules one-shot per-frame callbacks; every request is cancelable."""

    def request(self, callback: FrameCallback) -> FrameHandle: ...

    def cancel(self, handle: FrameHandle) -> None: ...


class AsyncioFrameDriver:
    """Runs frame callbacks on an asyncio loop at roughly ``hz`` per second.

    ``request`` and ``cancel`` may be called from any thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, hz: float = 60.0) -> None:
        self._loop = loop
        self._interval = 1.0 / max(1.0, float(hz))

    def request(self, callback: FrameCallback) -> FrameHandle:
        handle = FrameHandle(callback)

        def _arm() -> None:
            if not handle.cancelled:
                handle.timer = self._loop.call_later(self._interval, handle.fire)

        try:
            self._loop.call_soon_threadsafe(_arm)
        except RuntimeError as exc:
            # loop already closed during shutdown
            logger.debug("frame request dropped: %s", exc)
            handle.cancelled = True
        return handle

    def cancel(self, handle: FrameHandle) -> None:
        handle.cancelled = True
        timer = handle.timer
        if timer is None:
            return
        try:
            self._loop.call_soon_threadsafe(timer.cancel)
        except RuntimeError as exc:
            logger.debug("frame cancel after loop close: %s", exc)


class ManualFrameDriver:
    """Frame driver advanced explicitly with :meth:`step`; for tests and headless use."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: list[FrameHandle] = []

    def request(self, callback: FrameCallback) -> FrameHandle:
        handle = FrameHandle(callback)
        with self._lock:
            self._pending.append(handle)
        return handle

    def cancel(self, handle: FrameHandle) -> None:
        handle.cancelled = True
        with self._lock:
            if handle in self._pending:
                self._pending.remove(handle)

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for h in self._pending if not h.cancelled)

    def step(self) -> int:
        with self._lock:
            due = self._pending
            self._pending = []
        fired = 0
        for handle in due:
            if not handle.cancelled:
                handle.fire()
                fired += 1
        return fired
