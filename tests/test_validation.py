"""Tests for input validation."""

import pytest

from studio_match.core.validation import (
    ProfileInput,
    TeamInput,
    sanitize_text,
    validate_input,
)


def test_sanitize_text() -> None:
    """Whitespace is collapsed and zero-width characters are removed."""
    assert sanitize_text("  hello \n\t world\u200b ") == "hello world"


def test_valid_team() -> None:
    """Good team input validates."""
    team, error = validate_input(
        TeamInput,
        {"name": "  Rocket   Lab ", "studio": "pitech", "skills_needed": ["ml"]},
    )
    assert error is None
    assert team is not None
    assert team.name == "Rocket Lab"
    assert team.skills_needed == ["ml"]


@pytest.mark.parametrize(
    ("data", "message"),
    [
        ({"name": "ab", "studio": "bigco"}, "Team name must be at least 3 characters"),
        ({"name": "x" * 101, "studio": "bigco"}, "Team name must be less than 100 characters"),
        (
            {"name": "Rocket", "studio": "moonbase"},
            "Studio must be one of: bigco, startup, pitech",
        ),
        (
            {"name": "Rocket", "studio": "bigco", "description": "d" * 1001},
            "Description must be less than 1000 characters",
        ),
        (
            {"name": "Rocket", "studio": "bigco", "skills_needed": ["s"] * 21},
            "Maximum 20 skills allowed",
        ),
        (
            {"name": "Rocket", "studio": "bigco", "skills_needed": ["s" * 51]},
            "Skills must be 50 characters or less",
        ),
    ],
)
def test_invalid_team(data: dict, message: str) -> None:
    """Bad team input reports a message."""
    team, error = validate_input(TeamInput, data)
    assert team is None
    assert error == message


def test_only_first_error_is_reported() -> None:
    """Only the first validation error is returned."""
    _, error = validate_input(TeamInput, {"name": "ab", "studio": "moonbase"})
    assert error == "Team name must be at least 3 characters"


def test_profile_linkedin_must_be_linkedin() -> None:
    """LinkedIn links must point at linkedin.com."""
    base = {"name": "Alice", "program": "MBA", "studio_preference": "startup"}

    profile, error = validate_input(
        ProfileInput, {**base, "linkedin": "https://www.linkedin.com/in/alice"}
    )
    assert error is None
    assert profile is not None

    _, error = validate_input(ProfileInput, {**base, "linkedin": "https://evil.com/in/alice"})
    assert error == "Must be a valid LinkedIn URL"


def test_profile_avatar_must_be_url() -> None:
    """Avatars must be valid URLs."""
    _, error = validate_input(
        ProfileInput,
        {"name": "Alice", "program": "MBA", "studio_preference": "bigco", "avatar": "nope"},
    )
    assert error == "Invalid avatar URL"
