"""Tests for environment-driven settings."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from pr_scout.config import (
    AI_BACKENDS_ENV_VAR,
    AI_TIMEOUT_ENV_VAR,
    GITHUB_TIMEOUT_ENV_VAR,
    ScoutSettings,
    load_settings,
    parse_backend_commands,
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    env_vars = (AI_BACKENDS_ENV_VAR, AI_TIMEOUT_ENV_VAR, GITHUB_TIMEOUT_ENV_VAR)
    for env_var in env_vars:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    # load_dotenv writes to os.environ directly.
    for env_var in env_vars:
        os.environ.pop(env_var, None)


@pytest.mark.unit
def test_defaults_when_environment_is_empty(clean_env: Path) -> None:
    settings = load_settings()

    assert settings == ScoutSettings()
    assert settings.ai_backends == (("claude", "--print"), ("llm",))
    assert hash(settings) == hash(ScoutSettings())
    assert settings.ai_timeout_seconds == 180.0
    assert settings.github_timeout_seconds == 20


@pytest.mark.unit
def test_environment_overrides(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(AI_BACKENDS_ENV_VAR, "llm -m gpt-4o, claude --print")
    monkeypatch.setenv(AI_TIMEOUT_ENV_VAR, "45")
    monkeypatch.setenv(GITHUB_TIMEOUT_ENV_VAR, "7")

    settings = load_settings()

    assert settings.ai_backends == (("llm", "-m", "gpt-4o"), ("claude", "--print"))
    assert settings.ai_timeout_seconds == 45.0
    assert settings.github_timeout_seconds == 7


@pytest.mark.unit
def test_settings_load_from_dotenv(clean_env: Path) -> None:
    (clean_env / ".env").write_text(f"{AI_TIMEOUT_ENV_VAR}=12\n", encoding="utf-8")

    assert load_settings().ai_timeout_seconds == 12.0


@pytest.mark.unit
@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_invalid_timeouts_are_rejected(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch, value: str
) -> None:
    monkeypatch.setenv(AI_TIMEOUT_ENV_VAR, value)

    with pytest.raises(ValueError, match=AI_TIMEOUT_ENV_VAR):
        load_settings()


@pytest.mark.unit
def test_parse_backend_commands_requires_one_command() -> None:
    with pytest.raises(ValueError):
        parse_backend_commands(" , ,")
