"""User-visible notices.

Components that act on behalf of the user report outcomes through a
:class:`Notifier` instead of talking to any UI directly.
"""

from __future__ import annotations

import logging
from typing import Protocol

log = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LogNotifier:
    """Default notifier that writes notices to the log."""

    def success(self, message: str) -> None:
        log.info("%s", message)

    def info(self, message: str) -> None:
        log.info("%s", message)

    def error(self, message: str) -> None:
        log.warning("%s", message)


class RecordingNotifier:
    """Keep every notice as a ``(level, message)`` tuple."""

    def __init__(self) -> None:
        self.notices: list[tuple[str, str]] = []

    def success(self, message: str) -> None:
        self.notices.append(("success", message))

    def info(self, message: str) -> None:
        self.notices.append(("info", message))

    def error(self, message: str) -> None:
        self.notices.append(("error", message))

    def messages(self, level: str) -> list[str]:
        return [m for lvl, m in self.notices if lvl == level]
