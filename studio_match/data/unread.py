"""Live count of unread messages across a user's conversations.

The count is recomputed on three triggers:

* once, shortly after :meth:`UnreadCounter.start`,
* on realtime pushes for new messages and read-receipt changes, coalesced by
  a trailing debounce,
* on a fixed poll interval, in case pushes were missed.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from ..adapters.base import StoreClient
from ..adapters.realtime import ANY_EVENT, RowChange, Subscription
from ..core.transforms import parse_timestamp
from ..errors import StoreError
from .lifetime import Lifetime

log = logging.getLogger(__name__)


class UnreadCountStrategy(ABC):
    name = "unread count"

    @abstractmethod
    async def count(self, client: StoreClient, user_id: str) -> int:
        """Return the unread total for ``user_id``; raises :class:`StoreError`."""


class AggregateUnreadCount(UnreadCountStrategy):
    """Single round-trip through the ``get_unread_count`` procedure."""

    name = "aggregate"

    async def count(self, client: StoreClient, user_id: str) -> int:
        data = await client.rpc("get_unread_count", {"p_user_id": user_id})
        try:
            return max(0, int(data or 0))
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Unexpected get_unread_count result: {data!r}") from exc


class ClientSideUnreadCount(UnreadCountStrategy):
    """Count from participations, read receipts and messages."""

    name = "client-side"

    async def count(self, client: StoreClient, user_id: str) -> int:
        participations, reads = await asyncio.gather(
            client.table("conversation_participants")
            .select("conversation_id")
            .eq("user_id", user_id)
            .execute(),
            client.table("message_reads")
            .select("conversation_id, last_read_at")
            .eq("user_id", user_id)
            .execute(),
        )
        if not participations:
            return 0

        conversation_ids = [p["conversation_id"] for p in participations]
        last_read = {
            r["conversation_id"]: parse_timestamp(r["last_read_at"])
            for r in reads
            if r.get("last_read_at")
        }
        messages = await (
            client.table("messages")
            .select("conversation_id, created_at")
            .in_("conversation_id", conversation_ids)
            .neq("sender_id", user_id)
            .execute()
        )

        total = 0
        for message in messages:
            seen = last_read.get(message["conversation_id"])
            if seen is None or parse_timestamp(message["created_at"]) > seen:
                total += 1
        return total


class FallbackUnreadCount(UnreadCountStrategy):
    """Try each strategy in turn until one succeeds.

    Failures are not remembered: every call starts again with the first
    strategy.
    """

    name = "fallback"

    def __init__(self, strategies: Sequence[UnreadCountStrategy]) -> None:
        if not strategies:
            raise ValueError("at least one strategy is required")
        self.strategies = list(strategies)

    async def count(self, client: StoreClient, user_id: str) -> int:
        last_error: StoreError | None = None
        for strategy in self.strategies:
            try:
                return await strategy.count(client, user_id)
            except StoreError as exc:
                log.warning("%s unread count failed, falling back: %s", strategy.name, exc)
                last_error = exc
        assert last_error is not None
        raise last_error


def default_strategy() -> UnreadCountStrategy:
    return FallbackUnreadCount([AggregateUnreadCount(), ClientSideUnreadCount()])


class UnreadCounter:
    """Keeps :attr:`count` close to the store's unread total for ``user_id``.

    Use as an async context manager, or call :meth:`start` and :meth:`close`
    from inside a running event loop.
    """

    def __init__(
        self,
        client: StoreClient,
        user_id: str,
        strategy: UnreadCountStrategy | None = None,
        debounce: float = 0.5,
        poll_interval: float = 30.0,
        initial_delay: float = 0.1,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.strategy = strategy or default_strategy()
        self.debounce = debounce
        self.poll_interval = poll_interval
        self.initial_delay = initial_delay
        self.count = 0
        self.lifetime = Lifetime()
        self.channel = f"unread-count-{user_id}"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._initial: asyncio.TimerHandle | None = None
        self._pending: asyncio.TimerHandle | None = None
        self._poller: asyncio.Task[None] | None = None
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: list[Callable[[int], None]] = []
        self._started = 0
        self._applied = 0

    # ------------------------------------------------------------------
    # Lifecycle
    def start(self) -> None:
        if self._loop is not None or not self.lifetime.active:
            return
        loop = self._loop = asyncio.get_running_loop()
        self._initial = loop.call_later(self.initial_delay, self._spawn)
        realtime = self.client.realtime
        self._subscriptions = [
            realtime.subscribe(self.channel, "messages", "INSERT", self._on_change),
            realtime.subscribe(self.channel, "message_reads", ANY_EVENT, self._on_change),
        ]
        self._poller = loop.create_task(self._poll())
        self.lifetime.on_close(self._teardown)

    def close(self) -> None:
        """Cancel timers and subscriptions; later results are discarded."""
        self.lifetime.close()

    def _teardown(self) -> None:
        for handle in (self._initial, self._pending):
            if handle is not None:
                handle.cancel()
        self._initial = self._pending = None
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []

    async def __aenter__(self) -> UnreadCounter:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def on_change(self, callback: Callable[[int], None]) -> None:
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Scheduling
    def _on_change(self, change: RowChange) -> None:
        self.schedule()

    def schedule(self) -> None:
        """Request a recount after the debounce window.

        Calls inside the window push the recount back, so a burst results in
        one recount ``debounce`` seconds after the last call.
        """
        if not self.lifetime.active or self._loop is None:
            return
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self._loop.call_later(self.debounce, self._spawn)

    def _spawn(self) -> None:
        self._pending = None
        if not self.lifetime.active or self._loop is None:
            return
        task = self._loop.create_task(self._recount())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _recount(self) -> None:
        try:
            await self.refresh()
        except Exception:
            log.exception("Unread recount failed for %s", self.user_id)

    async def _poll(self) -> None:
        while self.lifetime.active:
            await asyncio.sleep(self.poll_interval)
            await self._recount()

    # ------------------------------------------------------------------
    async def refresh(self) -> int:
        """Recount now and return the current value.

        Recounts may overlap (a push and the poll, say). Each one is numbered
        when it starts and a result is dropped once a later-started recount
        has already been applied.
        """
        if not self.lifetime.active:
            return self.count
        self._started += 1
        ticket = self._started
        try:
            value = await self.strategy.count(self.client, self.user_id)
        except StoreError as exc:
            log.error("Error fetching unread count for %s: %s", self.user_id, exc)
            return self.count
        if not self.lifetime.active or ticket < self._applied:
            return self.count
        self._applied = ticket
        self._set_count(max(0, value))
        return self.count

    def _set_count(self, value: int) -> None:
        if value == self.count:
            return
        self.count = value
        for callback in list(self._listeners):
            try:
                callback(value)
            except Exception:
                log.exception("Unread count listener %r failed", callback)
