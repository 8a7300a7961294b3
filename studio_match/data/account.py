"""Account-level procedures and the avatar upload."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from ..adapters.base import StoreClient
from ..errors import StoreError

log = logging.getLogger(__name__)

AVATAR_BUCKET = "avatars"


class RateLimitResult(BaseModel):
    allowed: bool
    attempts: int = 0
    remaining: int | None = None
    reason: str | None = None
    retry_after: int | None = None


class AccountService:
    def __init__(self, client: StoreClient) -> None:
        self.client = client

    async def is_admin(self, user_id: str) -> bool:
        try:
            data = await self.client.rpc("has_role", {"_user_id": user_id, "_role": "admin"})
        except StoreError as exc:
            log.warning("Role check failed for %s: %s", user_id, exc)
            return False
        return bool(data)

    async def log_event(
        self, action: str, metadata: Mapping[str, Any] | None = None
    ) -> None:
        """Record an audit event; failures are logged and otherwise ignored."""
        try:
            await self.client.rpc(
                "log_audit_event",
                {"p_action": action, "p_metadata": json.dumps(dict(metadata or {}))},
            )
        except StoreError as exc:
            log.warning("Failed to log security event %s: %s", action, exc)

    async def check_rate_limit(
        self,
        identifier: str,
        action: str,
        max_attempts: int = 5,
        window_minutes: int = 15,
        block_minutes: int = 30,
    ) -> RateLimitResult:
        data = await self.client.rpc(
            "check_rate_limit",
            {
                "p_identifier": identifier,
                "p_action": action,
                "p_max_attempts": max_attempts,
                "p_window_minutes": window_minutes,
                "p_block_minutes": block_minutes,
            },
        )
        return RateLimitResult.model_validate(data)

    async def request_data_export(self, user_id: str) -> Any:
        return await self.client.rpc("export_user_data", {"p_user_id": user_id})

    async def request_account_deletion(self, user_id: str) -> str | None:
        """File a deletion request; returns an error message on failure."""
        try:
            await (
                self.client.table("data_requests")
                .insert({"user_id": user_id, "request_type": "deletion"})
                .execute()
            )
        except StoreError as exc:
            log.error("Deletion request failed for %s: %s", user_id, exc)
            return exc.message or "Request failed"
        await self.log_event("deletion_requested")
        return None

    async def upload_avatar(
        self,
        user_id: str,
        filename: str,
        content: bytes,
        content_type: str = "image/jpeg",
    ) -> str:
        """Store ``content`` as the user's avatar and return its public URL.

        The URL carries a timestamp query so clients fetch the new image.
        """
        ext = filename.rsplit(".", 1)[-1] if "." in filename else "jpg"
        path = f"{user_id}/avatar.{ext or 'jpg'}"
        await self.client.upload(AVATAR_BUCKET, path, content, content_type, upsert=True)
        url = self.client.public_url(AVATAR_BUCKET, path)
        return f"{url}?t={int(time.time() * 1000)}"
