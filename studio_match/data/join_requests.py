"""Team owners answering requests to join their team."""

from __future__ import annotations

import logging

from ..adapters.base import StoreClient
from ..core.models import ACCEPTED, CONFIRMED, REJECTED
from ..errors import StoreError
from ..notices import LogNotifier, Notifier

log = logging.getLogger(__name__)


class JoinRequests:
    """Accept or decline pending ``matches`` aimed at a team."""

    def __init__(self, client: StoreClient, notifier: Notifier | None = None) -> None:
        self.client = client
        self.notifier = notifier or LogNotifier()

    async def accept(self, match_id: str, team_id: str, user_id: str) -> bool:
        """Mark the match accepted and add ``user_id`` to the team.

        The new member also joins the team conversation when one exists.
        Someone who is already a confirmed member is not added twice.
        """
        try:
            existing = await (
                self.client.table("team_members")
                .select("id")
                .eq("team_id", team_id)
                .eq("user_id", user_id)
                .eq("status", CONFIRMED)
                .maybe_single()
            )
            await self._set_status(match_id, ACCEPTED)
            if existing is not None:
                self.notifier.error("This user is already a team member")
                return True

            await (
                self.client.table("team_members")
                .insert(
                    {
                        "team_id": team_id,
                        "user_id": user_id,
                        "role": "member",
                        "status": CONFIRMED,
                    }
                )
                .execute()
            )
            await self._join_team_conversation(team_id, user_id)
        except StoreError as exc:
            log.error("Error accepting join request %s: %s", match_id, exc)
            self.notifier.error("Failed to accept request")
            return False
        self.notifier.success("Member added to team!")
        return True

    async def reject(self, match_id: str) -> bool:
        try:
            await self._set_status(match_id, REJECTED)
        except StoreError as exc:
            log.error("Error declining join request %s: %s", match_id, exc)
            self.notifier.error("Failed to decline request")
            return False
        self.notifier.info("Request declined")
        return True

    async def _set_status(self, match_id: str, status: str) -> None:
        await self.client.table("matches").update({"status": status}).eq("id", match_id).execute()

    async def _join_team_conversation(self, team_id: str, user_id: str) -> None:
        conversation = await (
            self.client.table("conversations")
            .select("id")
            .eq("team_id", team_id)
            .eq("type", "team")
            .maybe_single()
        )
        if conversation is None:
            return
        already = await (
            self.client.table("conversation_participants")
            .select("id")
            .eq("conversation_id", conversation["id"])
            .eq("user_id", user_id)
            .maybe_single()
        )
        if already is None:
            await (
                self.client.table("conversation_participants")
                .insert({"conversation_id": conversation["id"], "user_id": user_id})
                .execute()
            )
