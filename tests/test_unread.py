"""Tests for the unread message counter."""

import asyncio

import pytest

from studio_match.adapters.base import StoreClient
from studio_match.adapters.memory import MemoryClient
from studio_match.adapters.realtime import RowChange
from studio_match.data.unread import (
    AggregateUnreadCount,
    ClientSideUnreadCount,
    FallbackUnreadCount,
    UnreadCounter,
    UnreadCountStrategy,
)
from studio_match.errors import StoreError


class RecordingStrategy(UnreadCountStrategy):
    """Counts its own invocations and remembers when they happened."""

    name = "recording"

    def __init__(self) -> None:
        self.times: list[float] = []

    async def count(self, client: StoreClient, user_id: str) -> int:
        self.times.append(asyncio.get_running_loop().time())
        return len(self.times)


def message(sender: str, minute: int, conversation: str = "c1") -> dict:
    return {
        "conversation_id": conversation,
        "sender_id": sender,
        "created_at": f"2024-05-01T10:{minute:02d}:00Z",
    }


def conversation_client() -> MemoryClient:
    """Three messages from Bob; Alice read up to between the first two."""
    return MemoryClient(
        {
            "conversation_participants": [
                {"conversation_id": "c1", "user_id": "alice"},
                {"conversation_id": "c1", "user_id": "bob"},
            ],
            "messages": [
                message("bob", 0),
                message("bob", 5),
                message("bob", 10),
                message("alice", 11),
                message("bob", 12, conversation="c2"),
            ],
            "message_reads": [
                {
                    "conversation_id": "c1",
                    "user_id": "alice",
                    "last_read_at": "2024-05-01T10:01:00Z",
                },
            ],
        }
    )


@pytest.mark.parametrize(
    "strategy", [AggregateUnreadCount(), ClientSideUnreadCount()], ids=lambda s: s.name
)
def test_counts_messages_after_last_read(strategy: UnreadCountStrategy) -> None:
    """Only messages after the last read receipt count."""
    client = conversation_client()
    assert asyncio.run(strategy.count(client, "alice")) == 2


@pytest.mark.parametrize(
    "strategy", [AggregateUnreadCount(), ClientSideUnreadCount()], ids=lambda s: s.name
)
def test_counts_everything_without_read_receipt(strategy: UnreadCountStrategy) -> None:
    """Without a receipt every message from others counts."""
    client = conversation_client()
    client.rows("message_reads").clear()
    assert asyncio.run(strategy.count(client, "alice")) == 3


def test_client_side_count_without_conversations(client: MemoryClient) -> None:
    """A user in no conversation has nothing unread."""
    assert asyncio.run(ClientSideUnreadCount().count(client, "alice")) == 0
    assert client.count("select", "messages") == 0


def test_fallback_is_not_remembered() -> None:
    """Each count tries the procedure again first."""
    client = conversation_client()
    client.fail("rpc:get_unread_count")
    strategy = FallbackUnreadCount([AggregateUnreadCount(), ClientSideUnreadCount()])

    assert asyncio.run(strategy.count(client, "alice")) == 2
    assert asyncio.run(strategy.count(client, "alice")) == 2
    assert client.count("rpc", "get_unread_count") == 2


def test_fallback_raises_when_every_strategy_fails() -> None:
    """The last error is raised once every strategy has failed."""
    client = conversation_client()
    client.fail("rpc:get_unread_count")
    client.fail("messages")
    strategy = FallbackUnreadCount([AggregateUnreadCount(), ClientSideUnreadCount()])

    with pytest.raises(StoreError):
        asyncio.run(strategy.count(client, "alice"))


def test_burst_of_pushes_causes_one_recount(client: MemoryClient) -> None:
    """Pushes at 0, 10ms and 30ms with a 50ms window recount once, at ~80ms."""
    strategy = RecordingStrategy()
    counter = UnreadCounter(
        client, "alice", strategy, debounce=0.05, poll_interval=60, initial_delay=60
    )

    async def go() -> float:
        loop = asyncio.get_running_loop()
        counter.start()
        start = loop.time()
        for delay in (0.0, 0.01, 0.02):
            await asyncio.sleep(delay)
            client.realtime.publish(RowChange("messages", "INSERT"))
        await asyncio.sleep(0.2)
        counter.close()
        return start

    start = asyncio.run(go())
    assert len(strategy.times) == 1
    assert 0.075 <= strategy.times[0] - start < 0.15
    assert counter.count == 1


def test_new_message_updates_count(client: MemoryClient) -> None:
    """A new message push updates the count and notifies listeners."""
    client.rows("conversation_participants").append(
        {"conversation_id": "c1", "user_id": "alice"}
    )
    counter = UnreadCounter(
        client, "alice", debounce=0.01, poll_interval=60, initial_delay=0.01
    )
    seen: list[int] = []
    counter.on_change(seen.append)

    async def go() -> None:
        async with counter:
            assert counter.channel in client.realtime.channels()
            await asyncio.sleep(0.05)
            await client.table("messages").insert(
                {"conversation_id": "c1", "sender_id": "bob", "content": "hi"}
            ).execute()
            await asyncio.sleep(0.05)

    asyncio.run(go())
    assert seen == [1]
    assert counter.count == 1
    assert client.realtime.channels() == set()


def test_read_receipt_change_triggers_recount(client: MemoryClient) -> None:
    """Read receipt changes recount; message deletes do not."""
    strategy = RecordingStrategy()
    counter = UnreadCounter(
        client, "alice", strategy, debounce=0.01, poll_interval=60, initial_delay=60
    )

    async def go() -> None:
        counter.start()
        client.realtime.publish(RowChange("message_reads", "UPDATE"))
        client.realtime.publish(RowChange("messages", "DELETE"))
        await asyncio.sleep(0.05)
        counter.close()

    asyncio.run(go())
    assert len(strategy.times) == 1


def test_poll_recounts(client: MemoryClient) -> None:
    """The poll recounts without any push."""
    strategy = RecordingStrategy()
    counter = UnreadCounter(
        client, "alice", strategy, debounce=1, poll_interval=0.02, initial_delay=60
    )

    async def go() -> None:
        counter.start()
        await asyncio.sleep(0.07)
        counter.close()

    asyncio.run(go())
    assert len(strategy.times) >= 2


def test_close_discards_in_flight_result() -> None:
    """A recount finishing after close is not applied."""
    client = conversation_client()
    client.latency = 0.02
    counter = UnreadCounter(client, "alice")

    async def go() -> None:
        task = asyncio.create_task(counter.refresh())
        await asyncio.sleep(0)
        counter.close()
        await task
        # pushes after close schedule nothing
        counter.schedule()

    asyncio.run(go())
    assert counter.count == 0


def test_refresh_error_keeps_count() -> None:
    """A failed recount keeps the last count."""
    client = conversation_client()
    counter = UnreadCounter(client, "alice")
    assert asyncio.run(counter.refresh()) == 2

    client.fail("rpc:get_unread_count")
    client.fail("messages")
    assert asyncio.run(counter.refresh()) == 2


class ScriptedStrategy(UnreadCountStrategy):
    """Answers each call with the next ``(delay, value)`` pair."""

    name = "scripted"

    def __init__(self, *script: tuple[float, int]) -> None:
        self.script = list(script)

    async def count(self, client: StoreClient, user_id: str) -> int:
        delay, value = self.script.pop(0)
        await asyncio.sleep(delay)
        return value


def test_slow_earlier_recount_does_not_overwrite_later_one(client: MemoryClient) -> None:
    """The value from the recount that started last wins."""
    counter = UnreadCounter(client, "alice", ScriptedStrategy((0.05, 1), (0.01, 5)))

    async def go() -> None:
        slow = asyncio.create_task(counter.refresh())
        await asyncio.sleep(0.005)
        fast = asyncio.create_task(counter.refresh())
        await asyncio.gather(slow, fast)

    asyncio.run(go())
    assert counter.count == 5


def test_failing_listener_does_not_stop_polling(client: MemoryClient) -> None:
    """A listener that raises is logged and the poll keeps running."""
    strategy = RecordingStrategy()
    counter = UnreadCounter(
        client, "alice", strategy, debounce=1, poll_interval=0.01, initial_delay=60
    )
    seen: list[int] = []

    def flaky(value: int) -> None:
        if value == 1:
            raise RuntimeError("listener broke")
        seen.append(value)

    counter.on_change(flaky)

    async def go() -> None:
        counter.start()
        await asyncio.sleep(0.1)
        counter.close()

    asyncio.run(go())
    assert len(strategy.times) >= 3
    assert seen and seen[0] == 2


def test_unexpected_error_does_not_stop_polling(client: MemoryClient) -> None:
    """An error outside the store is logged and the next poll still runs."""

    class Broken(RecordingStrategy):
        async def count(self, client: StoreClient, user_id: str) -> int:
            value = await super().count(client, user_id)
            if value == 1:
                raise KeyError("unread")
            return value

    strategy = Broken()
    counter = UnreadCounter(
        client, "alice", strategy, debounce=1, poll_interval=0.01, initial_delay=60
    )

    async def go() -> None:
        counter.start()
        await asyncio.sleep(0.1)
        counter.close()

    asyncio.run(go())
    assert len(strategy.times) >= 3
    assert counter.count >= 2


def test_malformed_aggregate_result_falls_back() -> None:
    """A non-numeric procedure result counts as a store failure."""
    client = conversation_client()
    client.procedures["get_unread_count"] = lambda params: "abc"

    with pytest.raises(StoreError):
        asyncio.run(AggregateUnreadCount().count(client, "alice"))
    strategy = FallbackUnreadCount([AggregateUnreadCount(), ClientSideUnreadCount()])
    assert asyncio.run(strategy.count(client, "alice")) == 2
