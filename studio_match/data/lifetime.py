"""Ownership handle for asynchronous work."""

from __future__ import annotations

import logging
from collections.abc import Callable

log = logging.getLogger(__name__)


class Lifetime:
    """Tracks whether the owner of some asynchronous work is still around.

    Results computed after :meth:`close` must be dropped by whoever checks
    :attr:`active`; registered close callbacks run once, newest first.
    """

    def __init__(self) -> None:
        self.active = True
        self._callbacks: list[Callable[[], None]] = []

    def on_close(self, callback: Callable[[], None]) -> None:
        if not self.active:
            callback()
            return
        self._callbacks.append(callback)

    def close(self) -> None:
        if not self.active:
            return
        self.active = False
        while self._callbacks:
            callback = self._callbacks.pop()
            try:
                callback()
            except Exception:
                log.exception("Close callback %r failed", callback)
