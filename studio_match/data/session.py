"""Session and profile loading with a bounded wait."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from ..adapters.base import StoreClient
from ..core.models import Session, UserProfile
from ..core.transforms import transform_profile
from ..errors import StoreError
from .lifetime import Lifetime

log = logging.getLogger(__name__)

T = TypeVar("T")


class SessionInitializer:
    """Loads the current session and the signed-in user's profile.

    Each fetch races ``timeout`` seconds; a fetch that times out or fails
    counts as "no result", so :attr:`loading` always ends up ``False``.
    """

    def __init__(self, client: StoreClient, timeout: float = 5.0) -> None:
        self.client = client
        self.timeout = timeout
        self.session: Session | None = None
        self.profile: UserProfile | None = None
        self.loading = True
        self.lifetime = Lifetime()

    async def _bounded(self, awaitable: Awaitable[T], what: str) -> T | None:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except TimeoutError:
            log.warning("Timed out after %.1fs fetching %s", self.timeout, what)
        except StoreError as exc:
            log.error("Error fetching %s: %s", what, exc)
        return None

    async def fetch_profile(self, user_id: str) -> UserProfile | None:
        row = await (
            self.client.table("profiles").select("*").eq("user_id", user_id).maybe_single()
        )
        return transform_profile(row) if row else None

    async def initialize(self) -> Session | None:
        try:
            session = await self._bounded(self.client.get_session(), "session")
            if not self.lifetime.active:
                return None
            self.session = session
            if session is not None:
                profile = await self._bounded(
                    self.fetch_profile(session.user_id), "profile"
                )
                if self.lifetime.active:
                    self.profile = profile
        finally:
            if self.lifetime.active:
                self.loading = False
        return self.session

    async def refresh_profile(self) -> UserProfile | None:
        if self.session is None or not self.lifetime.active:
            return self.profile
        profile = await self._bounded(
            self.fetch_profile(self.session.user_id), "profile"
        )
        if self.lifetime.active:
            self.profile = profile
        return self.profile

    async def sign_out(self) -> None:
        await self.client.sign_out()
        self.session = None
        self.profile = None

    def close(self) -> None:
        self.lifetime.close()
