from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_default_secret_key_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", secret_key="change-me")
    assert settings.secret_key == "change-me"


def test_default_secret_key_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", secret_key="change-me")


def test_placeholder_secret_key_prefix_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", secret_key="change-me-in-production")


def test_debug_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="prod", secret_key="super-secure-value", debug=True)


def test_custom_secret_key_allowed_in_production() -> None:
    settings = Settings(_env_file=None, app_env="production", secret_key="super-secure-value")
    assert settings.secret_key == "super-secure-value"


def test_unknown_default_timezone_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_timezone="Mars/Olympus_Mons")


def test_booking_limits_have_expected_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.slot_step_minutes == 30
    assert settings.recurrence_max_count == 52
    assert settings.default_session_minutes == 60
