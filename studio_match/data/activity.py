"""The user's swipe history, as shown in the activity view."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Literal

from ..adapters.base import Row, StoreClient
from ..core.models import INDIVIDUAL_TO_TEAM, REJECTED, Team, UserProfile
from ..core.transforms import transform_profile, transform_team
from ..errors import StoreError
from .candidates import fetch_profiles
from .lifetime import Lifetime

log = logging.getLogger(__name__)

Direction = Literal["left", "right"]


@dataclass
class SwipeAction:
    kind: Literal["user", "team"]
    item: UserProfile | Team
    direction: Direction
    match_type: str


class ActivityHistory:
    """Swipes made by ``user_id``, oldest first.

    :meth:`load` replaces the entries with the most recent ``limit`` swipes
    found in the store. Swipes made afterwards are appended with :meth:`add`.
    """

    def __init__(self, client: StoreClient, user_id: str | None, limit: int = 100) -> None:
        self.client = client
        self.user_id = user_id
        self.limit = limit
        self.loading = False
        self.lifetime = Lifetime()
        self._entries: list[SwipeAction] = []
        self._fetching = False

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SwipeAction]:
        return iter(list(self._entries))

    def __getitem__(self, index: int) -> SwipeAction:
        return self._entries[index]

    @property
    def last(self) -> SwipeAction | None:
        return self._entries[-1] if self._entries else None

    def add(self, action: SwipeAction) -> None:
        self._entries.append(action)

    def remove(self, index: int) -> SwipeAction | None:
        """Drop the entry at ``index``; out of range does nothing."""
        if not -len(self._entries) <= index < len(self._entries):
            return None
        return self._entries.pop(index)

    def remove_last(self) -> SwipeAction | None:
        return self._entries.pop() if self._entries else None

    def close(self) -> None:
        self.lifetime.close()

    # ------------------------------------------------------------------
    async def load(self) -> bool:
        """Rebuild the history from the ``matches`` table.

        Returns ``False`` without touching the store when a load is already
        running, the owner has closed, or there is no user. A store failure
        is logged and keeps the current entries.
        """
        if not self.user_id or self._fetching or not self.lifetime.active:
            return False
        self._fetching = True
        self.loading = True
        try:
            entries = await self._resolve(self.user_id)
        except StoreError:
            log.exception("Error loading activity history for %s", self.user_id)
            entries = None
        finally:
            self._fetching = False
            if self.lifetime.active:
                self.loading = False
        if entries is not None and self.lifetime.active:
            self._entries = entries
        return True

    async def _resolve(self, user_id: str) -> list[SwipeAction]:
        matches = await (
            self.client.table("matches")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", ascending=False)
            .limit(self.limit)
            .execute()
        )
        if not matches:
            return []

        team_matches = [m for m in matches if m.get("match_type") == INDIVIDUAL_TO_TEAM]
        people_matches = [m for m in matches if m.get("match_type") != INDIVIDUAL_TO_TEAM]
        profiles, teams = await asyncio.gather(
            fetch_profiles(
                self.client,
                (m["target_user_id"] for m in people_matches if m.get("target_user_id")),
            ),
            self._fetch_teams(m.get("team_id") for m in team_matches),
        )

        entries: list[SwipeAction] = []
        # the query is newest first; entries are kept oldest first
        for match in reversed(matches):
            direction: Direction = "left" if match.get("status") == REJECTED else "right"
            match_type = match.get("match_type") or ""
            if match_type == INDIVIDUAL_TO_TEAM:
                team = teams.get(match.get("team_id") or "")
                if team is not None:
                    entries.append(
                        SwipeAction("team", transform_team(team), direction, match_type)
                    )
            else:
                profile = profiles.get(match.get("target_user_id") or "")
                if profile is not None:
                    entries.append(
                        SwipeAction("user", transform_profile(profile), direction, match_type)
                    )
        return entries

    async def _fetch_teams(self, team_ids: Iterable[str | None]) -> dict[str, Row]:
        ids = list(dict.fromkeys(t for t in team_ids if t))
        if not ids:
            return {}
        rows = await self.client.table("teams").select("*").in_("id", ids).execute()
        return {row["id"]: row for row in rows}
