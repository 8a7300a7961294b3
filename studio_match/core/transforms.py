"""Mapping from raw store rows to application models.

Every function here is pure and total: missing optional columns get
defaults and nothing is coerced, so a row the store accepted always maps.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Mapping
from datetime import UTC
from typing import Any

from .models import Team, UserProfile


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    try:
        return [_text(v) for v in value]
    except TypeError:
        return [_text(value)]


def _optional(value: Any) -> str | None:
    return _text(value) if value else None


def _enum(value: Any) -> str | None:
    # unknown values pass through; only the type is normalised
    return None if value is None else _text(value)


def split_looking_for(value: Any) -> list[str]:
    """Split the stored free-text ``looking_for`` column into entries."""
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return _str_list(value)


def transform_profile(row: Mapping[str, Any]) -> UserProfile:
    """Build a :class:`UserProfile` from a ``profiles`` row."""
    primary = _enum(row.get("studio_preference"))
    preferences = row.get("studio_preferences")
    if isinstance(preferences, (list, tuple)) and preferences:
        ordered = [_enum(p) for p in preferences]
    else:
        ordered = [primary]
    return UserProfile(
        id=_text(row.get("user_id") or row.get("id")),
        name=_text(row.get("name")),
        program=_enum(row.get("program")),
        skills=_str_list(row.get("skills")),
        bio=_text(row.get("bio")),
        studio_preference=primary,
        studio_preferences=ordered,
        avatar=_optional(row.get("avatar")),
        linkedin=_optional(row.get("linkedin")),
    )


def transform_team(
    row: Mapping[str, Any], members: Iterable[UserProfile] = ()
) -> Team:
    """Build a :class:`Team` from a ``teams`` row and an optional roster."""
    return Team(
        id=_text(row.get("id")),
        name=_text(row.get("name")),
        studio=_enum(row.get("studio")),
        description=_text(row.get("description")),
        members=list(members),
        looking_for=split_looking_for(row.get("looking_for")),
        skills_needed=_str_list(row.get("skills_needed")),
        created_by=_optional(row.get("created_by")),
    )


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse an ISO-8601 store timestamp; naive values are taken as UTC."""
    parsed = datetime.datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
