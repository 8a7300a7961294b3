"""Input schemas for user-initiated writes.

Validation happens locally, before any request is made, and callers only
ever see the first failure message.
"""

from __future__ import annotations

import re
from typing import Any, TypeVar
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from .models import STUDIOS

_WHITESPACE = re.compile(r"\s+")
_ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")

Schema = TypeVar("Schema", bound=BaseModel)


def sanitize_text(text: str) -> str:
    """Trim, collapse runs of whitespace and drop zero-width characters."""
    return _ZERO_WIDTH.sub("", _WHITESPACE.sub(" ", text.strip()))


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_input", message)


def _check_skills(value: list[str]) -> list[str]:
    if len(value) > 20:
        raise _invalid("Maximum 20 skills allowed")
    for skill in value:
        if len(skill) > 50:
            raise _invalid("Skills must be 50 characters or less")
    return value


def _optional_text(value: str | None, limit: int, message: str) -> str | None:
    if value is None:
        return None
    if len(value) > limit:
        raise _invalid(message)
    return sanitize_text(value) if value else value


class TeamInput(BaseModel):
    """Fields accepted when creating a team."""

    name: str
    description: str | None = None
    studio: str
    looking_for: str | None = None
    skills_needed: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if len(value) < 3:
            raise _invalid("Team name must be at least 3 characters")
        if len(value) > 100:
            raise _invalid("Team name must be less than 100 characters")
        return sanitize_text(value)

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        return _optional_text(
            value, 1000, "Description must be less than 1000 characters"
        )

    @field_validator("studio")
    @classmethod
    def _studio(cls, value: str) -> str:
        if not value:
            raise _invalid("Studio is required")
        if value not in STUDIOS:
            raise _invalid(f"Studio must be one of: {', '.join(STUDIOS)}")
        return value

    @field_validator("looking_for")
    @classmethod
    def _looking_for(cls, value: str | None) -> str | None:
        return _optional_text(
            value, 500, "Looking for must be less than 500 characters"
        )

    @field_validator("skills_needed")
    @classmethod
    def _skills(cls, value: list[str]) -> list[str]:
        return _check_skills(value)


class ProfileInput(BaseModel):
    """Fields accepted when saving a profile."""

    name: str
    program: str
    skills: list[str] = Field(default_factory=list)
    bio: str | None = None
    studio_preference: str
    studio_preferences: list[str] = Field(default_factory=list)
    avatar: str | None = None
    linkedin: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if len(value) < 2:
            raise _invalid("Name must be at least 2 characters")
        if len(value) > 100:
            raise _invalid("Name must be less than 100 characters")
        return sanitize_text(value)

    @field_validator("program")
    @classmethod
    def _program(cls, value: str) -> str:
        if not value:
            raise _invalid("Program is required")
        return value

    @field_validator("skills")
    @classmethod
    def _skills(cls, value: list[str]) -> list[str]:
        return _check_skills(value)

    @field_validator("bio")
    @classmethod
    def _bio(cls, value: str | None) -> str | None:
        return _optional_text(value, 500, "Bio must be less than 500 characters")

    @field_validator("studio_preference")
    @classmethod
    def _studio_preference(cls, value: str) -> str:
        if not value:
            raise _invalid("Studio preference is required")
        return value

    @field_validator("avatar")
    @classmethod
    def _avatar(cls, value: str | None) -> str | None:
        if not value:
            return value
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise _invalid("Invalid avatar URL")
        return value

    @field_validator("linkedin")
    @classmethod
    def _linkedin(cls, value: str | None) -> str | None:
        if not value:
            return value
        if len(value) > 200:
            raise _invalid("LinkedIn URL must be less than 200 characters")
        host = urlparse(value.strip()).hostname or ""
        if not host.endswith("linkedin.com"):
            raise _invalid("Must be a valid LinkedIn URL")
        return value.strip()


def validate_input(
    schema: type[Schema], data: Any
) -> tuple[Schema | None, str | None]:
    """Validate ``data`` against ``schema``.

    Returns ``(model, None)`` on success and ``(None, message)`` with the
    first error message otherwise.
    """
    try:
        return schema.model_validate(data), None
    except ValidationError as exc:
        errors = exc.errors()
        return None, errors[0]["msg"] if errors else str(exc)
