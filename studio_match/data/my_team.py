"""The signed-in user's own team: lookup and creation."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from ..adapters.base import StoreClient
from ..core.models import CONFIRMED, Team, UserProfile
from ..core.transforms import split_looking_for, transform_team
from ..core.validation import TeamInput, validate_input
from ..errors import StoreError, TeamCreationError, TeamValidationError
from ..notices import LogNotifier, Notifier
from .candidates import build_roster, fetch_profiles
from .lifetime import Lifetime

log = logging.getLogger(__name__)


class TeamCreator(ABC):
    """One way of writing a new team and its owner rows."""

    name = "team creation"

    @abstractmethod
    async def create(
        self, client: StoreClient, user_id: str, data: TeamInput
    ) -> dict[str, str]:
        """Create the team; returns ``{"team_id": ..., "conversation_id": ...}``."""


class AtomicTeamCreation(TeamCreator):
    """Create everything in one server-side transaction."""

    name = "atomic"

    async def create(
        self, client: StoreClient, user_id: str, data: TeamInput
    ) -> dict[str, str]:
        result = await client.rpc(
            "create_team_with_owner",
            {
                "p_name": data.name,
                "p_description": data.description,
                "p_studio": data.studio,
                "p_looking_for": data.looking_for,
                "p_skills_needed": data.skills_needed,
                "p_user_id": user_id,
            },
        )
        if not isinstance(result, Mapping) or not result.get("team_id"):
            raise StoreError(f"Unexpected create_team_with_owner result: {result!r}")
        return {
            "team_id": str(result["team_id"]),
            "conversation_id": str(result.get("conversation_id") or ""),
        }


class SequentialTeamCreation(TeamCreator):
    """Create the four rows one request at a time.

    If a step fails, rows written by the earlier steps are deleted again,
    newest first, before the error is re-raised.
    """

    name = "sequential"

    async def create(
        self, client: StoreClient, user_id: str, data: TeamInput
    ) -> dict[str, str]:
        written: list[tuple[str, str]] = []
        try:
            team = await (
                client.table("teams")
                .insert(
                    {
                        "name": data.name,
                        "description": data.description,
                        "studio": data.studio,
                        "looking_for": data.looking_for,
                        "skills_needed": data.skills_needed,
                        "created_by": user_id,
                    }
                )
                .single()
            )
            written.append(("teams", team["id"]))

            member = await (
                client.table("team_members")
                .insert(
                    {
                        "team_id": team["id"],
                        "user_id": user_id,
                        "role": "owner",
                        "status": CONFIRMED,
                    }
                )
                .single()
            )
            written.append(("team_members", member["id"]))

            conversation = await (
                client.table("conversations")
                .insert({"type": "team", "team_id": team["id"]})
                .single()
            )
            written.append(("conversations", conversation["id"]))

            await (
                client.table("conversation_participants")
                .insert({"conversation_id": conversation["id"], "user_id": user_id})
                .execute()
            )
        except StoreError:
            await self.compensate(client, written)
            raise
        return {"team_id": str(team["id"]), "conversation_id": str(conversation["id"])}

    async def compensate(
        self, client: StoreClient, written: Sequence[tuple[str, str]]
    ) -> None:
        for table, row_id in reversed(written):
            try:
                await client.table(table).delete().eq("id", row_id).execute()
            except StoreError as exc:
                log.error("Could not roll back %s row %s: %s", table, row_id, exc)


DEFAULT_CREATORS: tuple[TeamCreator, ...] = (
    AtomicTeamCreation(),
    SequentialTeamCreation(),
)


class MyTeam:
    """Resolves at most one confirmed team for ``user_id``."""

    def __init__(
        self,
        client: StoreClient,
        user_id: str | None,
        profile: UserProfile | None = None,
        notifier: Notifier | None = None,
        creators: Sequence[TeamCreator] = DEFAULT_CREATORS,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.profile = profile
        self.notifier = notifier or LogNotifier()
        self.creators = list(creators)
        self.team: Team | None = None
        self.lifetime = Lifetime()
        self._refreshing = False

    async def refresh(self) -> Team | None:
        """Reload the team from the store.

        Store failures are logged and leave the current value in place. A
        call made while another refresh is running returns the current value
        without touching the store.
        """
        if not self.user_id or self._refreshing or not self.lifetime.active:
            return self.team
        self._refreshing = True
        try:
            team = await self.resolve(self.user_id)
        except StoreError:
            log.exception("Error fetching team for %s", self.user_id)
            return self.team
        finally:
            self._refreshing = False
        if self.lifetime.active:
            self.team = team
        return team

    async def resolve(self, user_id: str) -> Team | None:
        membership = await (
            self.client.table("team_members")
            .select("team_id")
            .eq("user_id", user_id)
            .eq("status", CONFIRMED)
            .limit(1)
            .maybe_single()
        )
        if membership is None:
            return None

        team_id = membership["team_id"]
        team_row, members = await asyncio.gather(
            self.client.table("teams").select("*").eq("id", team_id).maybe_single(),
            self.client.table("team_members")
            .select("user_id")
            .eq("team_id", team_id)
            .eq("status", CONFIRMED)
            .execute(),
        )
        if team_row is None:
            return None

        member_ids = [m["user_id"] for m in members]
        profiles = await fetch_profiles(self.client, member_ids)
        return transform_team(team_row, build_roster(member_ids, profiles))

    def _creator_profile(self, user_id: str) -> UserProfile:
        if self.profile is not None:
            return self.profile
        return UserProfile(id=user_id, name="You")

    async def create_team(self, data: TeamInput | Mapping[str, Any]) -> Team:
        """Validate ``data`` and create a team owned by the current user.

        Raises
        ------
        TeamValidationError
            The input was rejected; nothing was sent to the store.
        TeamCreationError
            Every creation strategy failed.

        """
        if not self.user_id:
            raise TeamCreationError("You must be signed in to create a team")

        raw = data.model_dump() if isinstance(data, TeamInput) else data
        validated, error = validate_input(TeamInput, raw)
        if error or validated is None:
            message = error or "Invalid team"
            self.notifier.error(message)
            raise TeamValidationError(message)

        created: dict[str, str] | None = None
        last_error: StoreError | None = None
        for creator in self.creators:
            try:
                created = await creator.create(self.client, self.user_id, validated)
                break
            except StoreError as exc:
                log.warning("%s team creation failed: %s", creator.name, exc)
                last_error = exc
        if created is None:
            log.error("Error creating team for %s: %s", self.user_id, last_error)
            self.notifier.error("Failed to create team")
            raise TeamCreationError("Failed to create team") from last_error

        team = Team(
            id=created["team_id"],
            name=validated.name,
            studio=validated.studio,
            description=validated.description or "",
            members=[self._creator_profile(self.user_id)],
            looking_for=split_looking_for(validated.looking_for),
            skills_needed=list(validated.skills_needed),
            created_by=self.user_id,
        )
        if self.lifetime.active:
            self.team = team
        self.notifier.success(f'Team created! You are now the admin of "{team.name}"')
        return team

    def close(self) -> None:
        self.lifetime.close()
