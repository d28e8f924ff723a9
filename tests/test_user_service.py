"""Tests for user registration and lookup."""

import pytest

from community_stage.services.errors import ErrorCode
from community_stage.services.user_service import (
    get_user,
    get_user_by_username,
    get_users_by_usernames,
    register_user,
    validate_username,
)


@pytest.mark.parametrize(
    "username",
    ["ab", "a" * 31, "has space", "_leading", "trailing_", "double__under", "admin"],
)
def test_validate_username_rejects(username: str) -> None:
    assert validate_username(username) is not None


def test_validate_username_accepts() -> None:
    assert validate_username("river_song42") is None


def test_register_user_normalizes_case(db_session) -> None:
    result = register_user(db_session, "  River_Song ", "River")
    assert result.success
    assert result.data.username == "river_song"
    assert get_user_by_username(db_session, "RIVER_SONG").id == result.data.id


def test_register_user_duplicate(db_session, make_user) -> None:
    make_user("taken_name")
    result = register_user(db_session, "Taken_Name")
    assert not result.success
    assert result.error_code is ErrorCode.USERNAME_TAKEN


def test_register_user_invalid(db_session) -> None:
    result = register_user(db_session, "no")
    assert result.error_code is ErrorCode.VALIDATION_ERROR
    assert "at least 3" in result.error.message


def test_get_users_by_usernames(db_session, make_user) -> None:
    make_user("alpha")
    make_user("beta")
    found = get_users_by_usernames(db_session, ["ALPHA", "beta", "gamma"])
    assert set(found) == {"alpha", "beta"}


def test_get_user(db_session, make_user) -> None:
    user = make_user("delta")
    assert get_user(db_session, user.id).username == "delta"
    assert get_user(db_session, user.id + 1000) is None
