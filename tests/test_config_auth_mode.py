# ruff: noqa: INP001
"""Settings validation tests for auth-mode and logging configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from taskdesk.core.auth_mode import AuthMode
from taskdesk.core.config import Settings

LOCAL_TOKEN_ERROR = (
    "LOCAL_AUTH_TOKEN must be at least 50 characters and non-placeholder when AUTH_MODE=local"
)


@pytest.mark.parametrize("token", ["", "x" * 49, "change-me", "   "])
def test_local_mode_rejects_weak_tokens(token: str) -> None:
    with pytest.raises(ValidationError, match=LOCAL_TOKEN_ERROR):
        Settings(
            _env_file=None,
            auth_mode=AuthMode.LOCAL,
            local_auth_token=token,
        )


def test_local_mode_accepts_real_token() -> None:
    token = "a" * 50
    settings = Settings(
        _env_file=None,
        auth_mode=AuthMode.LOCAL,
        local_auth_token=token,
    )

    assert settings.auth_mode == AuthMode.LOCAL
    assert settings.local_auth_token == token


def test_clerk_mode_requires_secret_key() -> None:
    with pytest.raises(
        ValidationError,
        match="CLERK_SECRET_KEY must be set and non-empty when AUTH_MODE=clerk",
    ):
        Settings(
            _env_file=None,
            auth_mode=AuthMode.CLERK,
            clerk_secret_key="",
        )


def test_clerk_mode_accepts_secret_key() -> None:
    settings = Settings(
        _env_file=None,
        auth_mode=AuthMode.CLERK,
        clerk_secret_key="sk_test_123",
    )

    assert settings.auth_mode == AuthMode.CLERK


def test_rejects_unknown_log_format() -> None:
    with pytest.raises(ValidationError, match="LOG_FORMAT must be either 'text' or 'json'"):
        Settings(
            _env_file=None,
            auth_mode=AuthMode.LOCAL,
            local_auth_token="a" * 50,
            log_format="xml",
        )


def test_dev_environment_enables_auto_migrate_unless_set(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("DB_AUTO_MIGRATE", raising=False)
    implicit = Settings(
        _env_file=None,
        auth_mode=AuthMode.LOCAL,
        local_auth_token="a" * 50,
        environment="dev",
    )
    explicit = Settings(
        _env_file=None,
        auth_mode=AuthMode.LOCAL,
        local_auth_token="a" * 50,
        environment="dev",
        db_auto_migrate=False,
    )
    production = Settings(
        _env_file=None,
        auth_mode=AuthMode.LOCAL,
        local_auth_token="a" * 50,
        environment="production",
    )

    assert implicit.db_auto_migrate is True
    assert explicit.db_auto_migrate is False
    assert production.db_auto_migrate is False


def test_cors_origin_list_splits_and_trims() -> None:
    settings = Settings(
        _env_file=None,
        auth_mode=AuthMode.LOCAL,
        local_auth_token="a" * 50,
        cors_origins=" http://a.test , ,http://b.test",
    )

    assert settings.cors_origin_list == ["http://a.test", "http://b.test"]
