"""Fan-out of row change events to subscribed handlers.

The push transport itself lives outside this package; whatever receives the
events hands them to :meth:`RealtimeBroker.publish` and the broker calls every
matching handler.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

ANY_EVENT = "*"


@dataclass(frozen=True)
class RowChange:
    table: str
    event: str  # INSERT | UPDATE | DELETE
    record: dict[str, Any] = field(default_factory=dict)
    old_record: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[RowChange], None]


class Subscription:
    """Handle returned by :meth:`RealtimeBroker.subscribe`."""

    def __init__(
        self, broker: RealtimeBroker, channel: str, table: str, event: str, handler: Handler
    ) -> None:
        self.broker = broker
        self.channel = channel
        self.table = table
        self.event = event
        self.handler = handler
        self.active = True

    def matches(self, change: RowChange) -> bool:
        return change.table == self.table and self.event in (ANY_EVENT, change.event)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self.broker.discard(self)


class RealtimeBroker:
    """In-process registry of subscriptions grouped by channel name."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self, channel: str, table: str, event: str, handler: Handler
    ) -> Subscription:
        sub = Subscription(self, channel, table, event.upper(), handler)
        self._subscriptions.append(sub)
        return sub

    def discard(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def remove_channel(self, channel: str) -> None:
        """Unsubscribe everything registered under ``channel``."""
        for sub in [s for s in self._subscriptions if s.channel == channel]:
            sub.unsubscribe()

    def channels(self) -> set[str]:
        return {s.channel for s in self._subscriptions}

    def publish(self, change: RowChange) -> int:
        """Deliver ``change``; returns the number of handlers called."""
        delivered = 0
        for sub in list(self._subscriptions):
            if not sub.active or not sub.matches(change):
                continue
            try:
                sub.handler(change)
            except Exception:
                log.exception(
                    "Realtime handler on %s failed for %s %s",
                    sub.channel,
                    change.event,
                    change.table,
                )
            delivered += 1
        return delivered
