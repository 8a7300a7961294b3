"""Data models for Studio Team Match's application-facing entities.

The models are implemented using :mod:`pydantic` so that they provide
runtime validation and convenient serialisation to and from dictionaries.
Enumerated fields (program, studio) are kept as plain strings: the store is
the authority on which values exist and an unknown value is carried through
to callers untouched.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

STUDIOS: tuple[str, ...] = ("bigco", "startup", "pitech")
PROGRAMS: tuple[str, ...] = (
    "MBA",
    "CM",
    "HealthTech",
    "UrbanTech",
    "MEng-CS",
    "MEng-DS",
    "LLM",
)

INDIVIDUAL_TO_INDIVIDUAL = "individual_to_individual"
INDIVIDUAL_TO_TEAM = "individual_to_team"
TEAM_TO_INDIVIDUAL = "team_to_individual"
MATCH_TYPES: tuple[str, ...] = (
    INDIVIDUAL_TO_INDIVIDUAL,
    INDIVIDUAL_TO_TEAM,
    TEAM_TO_INDIVIDUAL,
)
PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
MATCH_STATUSES: tuple[str, ...] = (PENDING, "matched", ACCEPTED, REJECTED)

CONFIRMED = "confirmed"


class UserProfile(BaseModel):
    """A student as shown on a swipe card.

    Attributes
    ----------
    id:
        The owning user's identifier.
    program:
        Academic track, normally one of :data:`PROGRAMS`.
    studio_preference:
        Primary studio, normally one of :data:`STUDIOS`.
    studio_preferences:
        Ordered acceptable studios; the primary one is first or included.

    """

    id: str
    name: str = ""
    program: str | None = None
    skills: list[str] = Field(default_factory=list)
    bio: str = ""
    studio_preference: str | None = None
    studio_preferences: list[str | None] = Field(default_factory=list)
    avatar: str | None = None
    linkedin: str | None = None


class Team(BaseModel):
    """A team, optionally hydrated with its confirmed member roster."""

    id: str
    name: str = ""
    studio: str | None = None
    description: str = ""
    members: list[UserProfile] = Field(default_factory=list)
    looking_for: list[str] = Field(default_factory=list)
    skills_needed: list[str] = Field(default_factory=list)
    created_by: str | None = None


class TeamMembership(BaseModel):
    team_id: str
    user_id: str
    role: str = "member"
    status: str = CONFIRMED


class Match(BaseModel):
    """A directed swipe from ``user_id`` onto a person or a team."""

    id: str | None = None
    user_id: str
    target_user_id: str | None = None
    team_id: str | None = None
    match_type: str
    status: str = "pending"
    created_at: str | None = None
    updated_at: str | None = None


class Message(BaseModel):
    id: str | None = None
    conversation_id: str
    sender_id: str
    content: str = ""
    created_at: str


class MessageRead(BaseModel):
    user_id: str
    conversation_id: str
    last_read_at: str


class Session(BaseModel):
    """The authenticated session as returned by the auth provider."""

    access_token: str = ""
    user_id: str
    email: str | None = None
