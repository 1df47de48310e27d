"""Environment-driven runtime settings."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import load_dotenv

AI_BACKENDS_ENV_VAR = "PR_SCOUT_AI_BACKENDS"
AI_TIMEOUT_ENV_VAR = "PR_SCOUT_AI_TIMEOUT_SECONDS"
GITHUB_TIMEOUT_ENV_VAR = "PR_SCOUT_GITHUB_TIMEOUT_SECONDS"
DEFAULT_AI_BACKENDS = ("claude --print", "llm")
DEFAULT_AI_TIMEOUT_SECONDS = 180.0
DEFAULT_GITHUB_TIMEOUT_SECONDS = 20


@dataclass(frozen=True, slots=True)
class ScoutSettings:
    """Resolved settings for one CLI run."""

    ai_backends: tuple[tuple[str, ...], ...] = field(
        default_factory=lambda: parse_backend_commands(",".join(DEFAULT_AI_BACKENDS))
    )
    ai_timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS
    github_timeout_seconds: int = DEFAULT_GITHUB_TIMEOUT_SECONDS


def parse_backend_commands(raw_value: str) -> tuple[tuple[str, ...], ...]:
    """Split a comma-separated list of shell-style commands into argv tuples."""
    commands: list[tuple[str, ...]] = []
    for chunk in raw_value.split(","):
        argv = tuple(shlex.split(chunk))
        if argv:
            commands.append(argv)
    if not commands:
        raise ValueError(f"{AI_BACKENDS_ENV_VAR} must name at least one command.")
    return tuple(commands)


def _read_positive_number(env_var: str, default: float) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = float(raw_value)
    except ValueError as error:
        raise ValueError(f"{env_var} must be a number, got '{raw_value}'.") from error
    if value <= 0:
        raise ValueError(f"{env_var} must be positive, got '{raw_value}'.")
    return value


def load_settings() -> ScoutSettings:
    """Load settings from the environment, honoring a local .env file."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    backends_value = os.getenv(AI_BACKENDS_ENV_VAR)
    settings = ScoutSettings(
        ai_timeout_seconds=_read_positive_number(AI_TIMEOUT_ENV_VAR, DEFAULT_AI_TIMEOUT_SECONDS),
        github_timeout_seconds=int(
            _read_positive_number(GITHUB_TIMEOUT_ENV_VAR, DEFAULT_GITHUB_TIMEOUT_SECONDS)
        ),
    )
    if backends_value:
        return replace(settings, ai_backends=parse_backend_commands(backends_value))
    return settings
