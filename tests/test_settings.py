"""Tests for configuration loading."""

import pytest

from community_stage.core.settings import Settings


def test_defaults(test_settings: Settings) -> None:
    assert test_settings.community_name_max_length == 50
    assert test_settings.community_description_max_length == 500
    assert test_settings.bulk_invite_max_targets == 50
    assert test_settings.bulk_invite_max_workers >= 1


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BULK_INVITE_MAX_WORKERS", "8")
    monkeypatch.setenv("MAX_PAGE_SIZE", "10")
    settings = Settings()
    assert settings.bulk_invite_max_workers == 8
    assert settings.max_page_size == 10


def test_effective_database_url_prefers_test_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://app@db/community")
    monkeypatch.setenv("TEST_DATABASE_URL", "sqlite:///./test.db")
    monkeypatch.setenv("USE_TEST_DATABASE", "true")
    assert Settings().effective_database_url == "sqlite:///./test.db"

    monkeypatch.setenv("USE_TEST_DATABASE", "false")
    settings = Settings()
    assert settings.effective_database_url.startswith("postgresql+asyncpg")
    assert settings.database_url_sync == "postgresql+psycopg://app@db/community"


@pytest.mark.parametrize(
    ("requested", "expected"),
    [(None, 20), (0, 20), (5, 5), (500, 100)],
)
def test_clamp_page_size(test_settings: Settings, requested: int | None, expected: int) -> None:
    assert test_settings.clamp_page_size(requested) == expected
