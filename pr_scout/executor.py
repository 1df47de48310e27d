"""Local command-line AI executor with an ordered backend fallback chain."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pr_scout.config import DEFAULT_AI_TIMEOUT_SECONDS, ScoutSettings
from pr_scout.errors import AIUnavailableError

logger = logging.getLogger(__name__)

AI_ERROR_SENTINEL = "AI_ERROR"
PROMPT_FILE_PREFIX = "pr-scout-prompt-"
EXTRA_PATH_ENTRIES = ("/usr/local/bin", "/opt/homebrew/bin")


class AIExecutor(Protocol):
    """Contract for anything that turns a prompt into raw model text."""

    def generate(self, prompt: str) -> str | None:
        """Return model output, or ``None`` when every backend failed."""


@dataclass(frozen=True, slots=True)
class CommandBackend:
    """One CLI tool that reads a prompt on stdin and prints a completion."""

    argv: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.argv[0]


def _subprocess_env() -> dict[str, str]:
    """Return the process environment with common tool locations on PATH."""
    env = dict(os.environ)
    path_entries = list(EXTRA_PATH_ENTRIES)
    if env.get("PATH"):
        path_entries.append(env["PATH"])
    env["PATH"] = os.pathsep.join(path_entries)
    return env


def _run_backend(backend: CommandBackend, prompt_path: Path, *, timeout_seconds: float) -> str:
    """Run one backend with the staged prompt file as stdin."""
    try:
        with prompt_path.open("r", encoding="utf-8") as prompt_file:
            completed = subprocess.run(
                list(backend.argv),
                stdin=prompt_file,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
                env=_subprocess_env(),
                check=False,
            )
    except OSError as error:
        raise AIUnavailableError(
            f"Backend '{backend.name}' could not be started: {error}"
        ) from error
    except subprocess.TimeoutExpired as error:
        raise AIUnavailableError(
            f"Backend '{backend.name}' timed out after {timeout_seconds:g}s."
        ) from error

    if completed.returncode != 0:
        raise AIUnavailableError(
            f"Backend '{backend.name}' exited with status {completed.returncode}."
        )
    output = completed.stdout.strip()
    if not output or output == AI_ERROR_SENTINEL:
        raise AIUnavailableError(f"Backend '{backend.name}' returned no output.")
    return output


class CommandLineExecutor:
    """Pipe prompts through local AI CLIs, falling back in order."""

    def __init__(
        self,
        backends: Sequence[CommandBackend],
        *,
        timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS,
    ) -> None:
        if not backends:
            raise ValueError("At least one AI backend is required.")
        self._backends = tuple(backends)
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: ScoutSettings) -> CommandLineExecutor:
        return cls(
            [CommandBackend(argv=argv) for argv in settings.ai_backends],
            timeout_seconds=settings.ai_timeout_seconds,
        )

    @property
    def backends(self) -> tuple[CommandBackend, ...]:
        return self._backends

    def generate(self, prompt: str) -> str | None:
        """Stage the prompt in a scratch file and try each backend in turn."""
        handle = tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            prefix=PROMPT_FILE_PREFIX,
            suffix=".txt",
            delete=False,
        )
        prompt_path = Path(handle.name)
        try:
            with handle:
                handle.write(prompt)
            for backend in self._backends:
                try:
                    output = _run_backend(
                        backend, prompt_path, timeout_seconds=self._timeout_seconds
                    )
                except AIUnavailableError as error:
                    logger.debug("AI backend failed: %s", error)
                    continue
                logger.debug("AI backend '%s' answered with %d chars", backend.name, len(output))
                return output
            logger.warning("All AI backends failed: %s", ", ".join(b.name for b in self._backends))
            return None
        finally:
            prompt_path.unlink(missing_ok=True)
