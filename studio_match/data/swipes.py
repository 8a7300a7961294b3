"""Recording swipe decisions and undoing them."""

from __future__ import annotations

import logging

from ..adapters.base import StoreClient
from ..core.models import (
    INDIVIDUAL_TO_INDIVIDUAL,
    INDIVIDUAL_TO_TEAM,
    PENDING,
    REJECTED,
    TEAM_TO_INDIVIDUAL,
)
from ..errors import StoreError
from ..notices import LogNotifier, Notifier
from .activity import ActivityHistory, Direction, SwipeAction
from .candidates import ProfileCandidates, TeamCandidates
from .my_team import MyTeam

log = logging.getLogger(__name__)


class SwipeRecorder:
    """Turns swipes on the front card of a deck into ``matches`` rows.

    A right swipe also opens a direct conversation between the two parties.
    A left swipe only records the rejection so the card is not shown again.
    """

    def __init__(
        self,
        client: StoreClient,
        user_id: str,
        people: ProfileCandidates,
        teams: TeamCandidates,
        my_team: MyTeam | None = None,
        notifier: Notifier | None = None,
        history: ActivityHistory | None = None,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.people = people
        self.teams = teams
        self.my_team = my_team
        self.notifier = notifier or LogNotifier()
        self.history = history if history is not None else ActivityHistory(client, user_id)

    @property
    def can_undo(self) -> bool:
        return len(self.history) > 0

    # ------------------------------------------------------------------
    # Writing
    async def _record(self, row: dict[str, object]) -> None:
        try:
            await self.client.table("matches").insert(row).execute()
        except StoreError as exc:
            log.error("Error recording swipe for %s: %s", self.user_id, exc)

    async def _connect(self, row: dict[str, object], other_id: str | None) -> None:
        """Insert a pending match and a direct conversation for both parties."""
        match = await self.client.table("matches").insert(row).single()
        conversation = await (
            self.client.table("conversations")
            .insert({"type": "direct", "match_id": match["id"]})
            .single()
        )
        participants = [self.user_id]
        if other_id and other_id != self.user_id:
            participants.append(other_id)
        await (
            self.client.table("conversation_participants")
            .insert(
                [{"conversation_id": conversation["id"], "user_id": uid} for uid in participants]
            )
            .execute()
        )

    async def swipe_profile(self, direction: Direction) -> SwipeAction | None:
        profile = self.people.first
        if profile is None:
            return None
        team = self.my_team.team if self.my_team is not None else None
        match_type = TEAM_TO_INDIVIDUAL if team is not None else INDIVIDUAL_TO_INDIVIDUAL
        action = SwipeAction("user", profile, direction, match_type)
        self.history.add(action)
        row: dict[str, object] = {
            "user_id": self.user_id,
            "target_user_id": profile.id,
            "match_type": match_type,
            "status": PENDING if direction == "right" else REJECTED,
        }
        if team is not None:
            row["team_id"] = team.id
        if direction == "left":
            await self._record(row)
        elif match_type == INDIVIDUAL_TO_INDIVIDUAL:
            await self._like(
                row, profile.id, f"Interest sent to {profile.name}!", "Failed to send interest"
            )
        else:
            await self._like(
                row, profile.id, f"Request sent to {profile.name}!", "Failed to send request"
            )
        self.people.remove(profile.id)
        return action

    async def swipe_team(self, direction: Direction) -> SwipeAction | None:
        team = self.teams.first
        if team is None:
            return None
        action = SwipeAction("team", team, direction, INDIVIDUAL_TO_TEAM)
        self.history.add(action)
        row: dict[str, object] = {
            "user_id": self.user_id,
            "target_user_id": team.created_by,
            "team_id": team.id,
            "match_type": INDIVIDUAL_TO_TEAM,
            "status": PENDING if direction == "right" else REJECTED,
        }
        if direction == "left":
            await self._record(row)
        else:
            await self._like(
                row, team.created_by, f"Request sent to {team.name}!", "Failed to send request"
            )
        self.teams.remove(team.id)
        return action

    async def _like(
        self, row: dict[str, object], other_id: str | None, sent: str, failed: str
    ) -> None:
        try:
            await self._connect(row, other_id)
        except StoreError as exc:
            log.error("Error creating %s match for %s: %s", row["match_type"], self.user_id, exc)
            self.notifier.error(failed)
            return
        self.notifier.success(sent)

    # ------------------------------------------------------------------
    # Undo
    async def _revert(self, action: SwipeAction) -> None:
        query = self.client.table("matches").delete().eq("user_id", self.user_id)
        if action.kind == "user":
            query = query.eq("target_user_id", action.item.id)
            query = query.eq("match_type", action.match_type)
            self.people.add(action.item)
        else:
            query = query.eq("team_id", action.item.id)
            query = query.eq("match_type", INDIVIDUAL_TO_TEAM)
            self.teams.add(action.item)
        try:
            await query.execute()
        except StoreError as exc:
            log.error("Error deleting match on undo for %s: %s", self.user_id, exc)

    async def undo(self) -> SwipeAction | None:
        """Revert the most recent swipe, putting its card back on top."""
        action = self.history.remove_last()
        if action is None:
            return None
        await self._revert(action)
        self.notifier.info("Undid last swipe")
        return action

    async def undo_at(self, index: int) -> SwipeAction | None:
        """Revert the swipe at ``index`` in :attr:`history`."""
        action = self.history.remove(index)
        if action is None:
            return None
        await self._revert(action)
        self.notifier.info("Action undone")
        return action
