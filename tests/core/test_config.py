"""Tests for settings loaded from SQLASSERT_* environment variables."""

import pytest
from pydantic import ValidationError

from sqlassert.core.config import Settings, get_settings


def test_defaults():
    settings = Settings()

    assert settings.max_falsifying_examples == 3
    assert settings.isolation_level == "SERIALIZABLE"
    assert settings.max_workers == 1
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SQLASSERT_MAX_FALSIFYING_EXAMPLES", "7")
    monkeypatch.setenv("SQLASSERT_MAX_WORKERS", "4")
    monkeypatch.setenv("SQLASSERT_ISOLATION_LEVEL", "READ UNCOMMITTED")

    settings = Settings()

    assert settings.max_falsifying_examples == 7
    assert settings.max_workers == 4
    assert settings.isolation_level == "READ UNCOMMITTED"


def test_negative_example_cap_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SQLASSERT_MAX_FALSIFYING_EXAMPLES", "-1")

    with pytest.raises(ValidationError):
        Settings()


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
