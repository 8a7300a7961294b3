"""Tests for recording and undoing swipes."""

import asyncio

from studio_match.adapters.memory import MemoryClient
from studio_match.core.models import Team
from studio_match.data.candidates import ProfileCandidates, TeamCandidates
from studio_match.data.my_team import MyTeam
from studio_match.data.swipes import SwipeRecorder
from studio_match.notices import RecordingNotifier


def make_client() -> MemoryClient:
    return MemoryClient(
        {
            "profiles": [
                {"id": "p1", "user_id": "ann", "name": "Ann", "created_at": "2024-01-01"},
                {"id": "p2", "user_id": "bo", "name": "Bo", "created_at": "2024-01-02"},
            ],
            "teams": [{"id": "t1", "name": "Rocket", "created_by": "lead"}],
        }
    )


def make_recorder(
    client: MemoryClient,
    my_team: MyTeam | None = None,
    notifier: RecordingNotifier | None = None,
) -> SwipeRecorder:
    people = ProfileCandidates(client, "me")
    teams = TeamCandidates(client, "me")

    async def load() -> None:
        await asyncio.gather(people.refresh(), teams.refresh())

    asyncio.run(load())
    return SwipeRecorder(client, "me", people, teams, my_team, notifier)


def test_swipe_right_on_profile() -> None:
    """A right swipe records a pending person-to-person match."""
    client = make_client()
    recorder = make_recorder(client)

    action = asyncio.run(recorder.swipe_profile("right"))

    assert action is not None and action.item.id == "ann"
    [match] = client.rows("matches")
    assert match["user_id"] == "me"
    assert match["target_user_id"] == "ann"
    assert match["match_type"] == "individual_to_individual"
    assert match["status"] == "pending"
    assert "team_id" not in match
    assert [p.id for p in recorder.people.items] == ["bo"]


def test_swipe_as_team_member() -> None:
    """Team members swipe on people on behalf of their team."""
    client = make_client()
    my_team = MyTeam(client, "me")
    asyncio.run(my_team.create_team({"name": "Mine", "studio": "bigco"}))
    assert my_team.team is not None
    recorder = make_recorder(client, my_team)

    asyncio.run(recorder.swipe_profile("left"))

    [match] = client.rows("matches")
    assert match["match_type"] == "team_to_individual"
    assert match["team_id"] == my_team.team.id
    assert match["status"] == "rejected"


def test_swipe_team_targets_creator() -> None:
    """A swipe on a team is aimed at the team's creator."""
    client = make_client()
    recorder = make_recorder(client)

    asyncio.run(recorder.swipe_team("right"))

    [match] = client.rows("matches")
    assert match["target_user_id"] == "lead"
    assert match["team_id"] == "t1"
    assert match["match_type"] == "individual_to_team"
    assert recorder.teams.items == []


def test_undo_restores_card_and_deletes_match() -> None:
    """Undo puts cards back and deletes their matches."""
    client = make_client()
    recorder = make_recorder(client)

    async def go() -> None:
        await recorder.swipe_profile("right")
        await recorder.swipe_team("left")
        await recorder.undo()
        await recorder.undo()

    asyncio.run(go())

    assert client.rows("matches") == []
    assert [p.id for p in recorder.people.items] == ["ann", "bo"]
    assert [t.id for t in recorder.teams.items] == ["t1"]
    assert not recorder.can_undo
    assert asyncio.run(recorder.undo()) is None


def test_empty_deck_records_nothing() -> None:
    """Swiping an empty deck does nothing."""
    client = MemoryClient()
    recorder = make_recorder(client)
    assert asyncio.run(recorder.swipe_profile("right")) is None
    assert asyncio.run(recorder.swipe_team("right")) is None
    assert client.count("insert", "matches") == 0


def test_right_swipe_opens_direct_conversation(notifier: RecordingNotifier) -> None:
    """Liking someone creates a conversation the two of you share."""
    client = make_client()
    recorder = make_recorder(client, notifier=notifier)

    asyncio.run(recorder.swipe_profile("right"))

    [match] = client.rows("matches")
    [conversation] = client.rows("conversations")
    assert conversation["type"] == "direct"
    assert conversation["match_id"] == match["id"]
    participants = client.rows("conversation_participants")
    assert sorted(p["user_id"] for p in participants) == ["ann", "me"]
    assert {p["conversation_id"] for p in participants} == {conversation["id"]}
    assert notifier.messages("success") == ["Interest sent to Ann!"]


def test_left_swipe_opens_no_conversation(notifier: RecordingNotifier) -> None:
    """Passing only records the rejection."""
    client = make_client()
    recorder = make_recorder(client, notifier=notifier)

    asyncio.run(recorder.swipe_profile("left"))
    asyncio.run(recorder.swipe_team("left"))

    assert [m["status"] for m in client.rows("matches")] == ["rejected", "rejected"]
    assert client.rows("conversations") == []
    assert client.rows("conversation_participants") == []
    assert notifier.notices == []


def test_team_swipes_send_requests(notifier: RecordingNotifier) -> None:
    """Team-to-person and person-to-team likes are both requests."""
    client = make_client()
    my_team = MyTeam(client, "me")
    my_team.team = Team(id="t9", name="Mine")
    recorder = make_recorder(client, my_team, notifier)

    asyncio.run(recorder.swipe_profile("right"))
    asyncio.run(recorder.swipe_team("right"))

    assert notifier.messages("success") == [
        "Request sent to Ann!",
        "Request sent to Rocket!",
    ]
    first, second = client.rows("matches")
    assert first["match_type"] == "team_to_individual"
    assert first["team_id"] == "t9"
    assert second["target_user_id"] == "lead"
    by_conversation: dict[str, set[str]] = {}
    for row in client.rows("conversation_participants"):
        by_conversation.setdefault(row["conversation_id"], set()).add(row["user_id"])
    assert sorted(by_conversation.values(), key=sorted) == [{"ann", "me"}, {"lead", "me"}]


def test_failed_like_reports_error_and_moves_on(notifier: RecordingNotifier) -> None:
    """A failed like is reported and the card still leaves the deck."""
    client = make_client()
    client.fail("insert:conversations")
    recorder = make_recorder(client, notifier=notifier)

    action = asyncio.run(recorder.swipe_profile("right"))

    assert action is not None
    assert notifier.messages("error") == ["Failed to send interest"]
    assert notifier.messages("success") == []
    assert [p.id for p in recorder.people.items] == ["bo"]


def test_undo_at_index(notifier: RecordingNotifier) -> None:
    """Undoing an older swipe leaves the newer ones in place."""
    client = make_client()
    recorder = make_recorder(client, notifier=notifier)

    async def go() -> None:
        await recorder.swipe_profile("left")
        await recorder.swipe_profile("left")
        assert await recorder.undo_at(5) is None
        undone = await recorder.undo_at(0)
        assert undone is not None and undone.item.id == "ann"

    asyncio.run(go())

    assert [a.item.id for a in recorder.history] == ["bo"]
    assert [m["target_user_id"] for m in client.rows("matches")] == ["bo"]
    assert [p.id for p in recorder.people.items] == ["ann"]
    assert notifier.messages("info") == ["Action undone"]
