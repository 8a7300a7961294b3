"""Swipeable people and teams for one user.

Both decks exclude anything the user already swiped and anyone already on a
team. The queries behind a refresh run concurrently and a refresh that
starts while another is still running does nothing.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from ..adapters.base import Row, StoreClient
from ..core.models import (
    CONFIRMED,
    INDIVIDUAL_TO_INDIVIDUAL,
    INDIVIDUAL_TO_TEAM,
    TEAM_TO_INDIVIDUAL,
    Team,
    UserProfile,
)
from ..core.transforms import transform_profile, transform_team
from ..errors import StoreError
from ..notices import LogNotifier, Notifier
from .lifetime import Lifetime

log = logging.getLogger(__name__)

C = TypeVar("C", UserProfile, Team)


def settle(results: Iterable[Any]) -> list[Any]:
    """Return ``gather(return_exceptions=True)`` results, re-raising bugs.

    Store failures stay in the list as values for the caller to inspect.
    """
    settled = list(results)
    for result in settled:
        if isinstance(result, BaseException) and not isinstance(result, StoreError):
            raise result
    return settled


async def fetch_profiles(client: StoreClient, user_ids: Iterable[str]) -> dict[str, Row]:
    """Look up many profiles in one request, keyed by ``user_id``."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return {}
    rows = await client.table("profiles").select("*").in_("user_id", ids).execute()
    return {row["user_id"]: row for row in rows if row.get("user_id")}


def build_roster(member_ids: Iterable[str], profiles: dict[str, Row]) -> list[UserProfile]:
    # memberships without a profile row are dropped
    return [transform_profile(profiles[uid]) for uid in member_ids if uid in profiles]


class CandidateList(ABC, Generic[C]):
    """Ordered, in-memory deck of candidates for ``user_id``."""

    kind = "candidates"

    def __init__(
        self,
        client: StoreClient,
        user_id: str | None,
        notifier: Notifier | None = None,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.notifier = notifier or LogNotifier()
        self.loading = True
        self.lifetime = Lifetime()
        self._items: dict[str, C] = {}
        self._refreshing = False

    # ------------------------------------------------------------------
    # Deck access
    @property
    def items(self) -> list[C]:
        return list(self._items.values())

    @property
    def first(self) -> C | None:
        return next(iter(self._items.values()), None)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self._items

    def remove(self, candidate_id: str) -> C | None:
        """Drop one candidate after a swipe; the rest keep their order."""
        return self._items.pop(candidate_id, None)

    def add(self, candidate: C) -> None:
        """Put ``candidate`` back at the front of the deck (undo)."""
        rest = {k: v for k, v in self._items.items() if k != candidate.id}
        self._items = {candidate.id: candidate, **rest}

    # ------------------------------------------------------------------
    # Loading
    async def refresh(self) -> bool:
        """Resolve the deck again.

        Returns ``False`` without touching the store when a refresh is
        already running, the owner has closed, or there is no user.
        """
        if not self.user_id or self._refreshing or not self.lifetime.active:
            return False
        self._refreshing = True
        self.loading = True
        try:
            resolved = await self.resolve(self.user_id)
        except StoreError:
            log.exception("Error fetching %s for %s", self.kind, self.user_id)
            resolved = None
        finally:
            self._refreshing = False
            if self.lifetime.active:
                self.loading = False
        if resolved is not None and self.lifetime.active:
            self._items = {c.id: c for c in resolved}
        return True

    def close(self) -> None:
        self.lifetime.close()

    @abstractmethod
    async def resolve(self, user_id: str) -> list[C] | None:
        """Compute the deck; ``None`` keeps the current one."""


class ProfileCandidates(CandidateList[UserProfile]):
    """Individuals ``user_id`` may still swipe on."""

    kind = "profiles"

    async def resolve(self, user_id: str) -> list[UserProfile] | None:
        members, swiped, profiles = settle(
            await asyncio.gather(
                self.client.table("team_members")
                .select("user_id")
                .eq("status", CONFIRMED)
                .execute(),
                self.client.table("matches")
                .select("target_user_id")
                .eq("user_id", user_id)
                .in_("match_type", [INDIVIDUAL_TO_INDIVIDUAL, TEAM_TO_INDIVIDUAL])
                .execute(),
                self.client.table("profiles")
                .select("*")
                .neq("user_id", user_id)
                .order("created_at")
                .order("id")
                .execute(),
                return_exceptions=True,
            )
        )
        if isinstance(profiles, StoreError):
            log.error("Error fetching profiles: %s", profiles)
            self.notifier.error("Failed to load profiles")
            return None
        for label, result in (("team members", members), ("swipes", swiped)):
            if isinstance(result, StoreError):
                log.error("Error fetching %s for %s: %s", label, user_id, result)
                return None

        excluded = {user_id}
        excluded.update(m["user_id"] for m in members)
        excluded.update(m["target_user_id"] for m in swiped if m.get("target_user_id"))
        return [
            transform_profile(row)
            for row in profiles
            if (row.get("user_id") or row.get("id")) not in excluded
        ]


class TeamCandidates(CandidateList[Team]):
    """Teams ``user_id`` may still swipe on, with their confirmed rosters."""

    kind = "teams"

    async def resolve(self, user_id: str) -> list[Team] | None:
        swiped, teams, members = settle(
            await asyncio.gather(
                self.client.table("matches")
                .select("team_id")
                .eq("user_id", user_id)
                .eq("match_type", INDIVIDUAL_TO_TEAM)
                .not_null("team_id")
                .execute(),
                self.client.table("teams")
                .select("*")
                .order("created_at")
                .order("id")
                .execute(),
                self.client.table("team_members")
                .select("team_id, user_id, role")
                .eq("status", CONFIRMED)
                .execute(),
                return_exceptions=True,
            )
        )
        if isinstance(teams, StoreError):
            log.error("Error fetching teams: %s", teams)
            self.notifier.error("Failed to load teams")
            return []
        for label, result in (("swipes", swiped), ("team members", members)):
            if isinstance(result, StoreError):
                log.error("Error fetching %s for %s: %s", label, user_id, result)
                return None

        swiped_ids = {m["team_id"] for m in swiped}
        own_ids = {m["team_id"] for m in members if m["user_id"] == user_id}
        available = [
            t for t in teams if t["id"] not in swiped_ids and t["id"] not in own_ids
        ]
        if not available:
            return []

        roster_ids: dict[str, list[str]] = {t["id"]: [] for t in available}
        for m in members:
            if m["team_id"] in roster_ids:
                roster_ids[m["team_id"]].append(m["user_id"])

        try:
            profiles = await fetch_profiles(
                self.client, (uid for ids in roster_ids.values() for uid in ids)
            )
        except StoreError as exc:
            log.warning("Could not load team member profiles: %s", exc)
            profiles = {}

        return [
            transform_team(t, build_roster(roster_ids[t["id"]], profiles))
            for t in available
        ]
