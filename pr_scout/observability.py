"""Logging setup and gateway telemetry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Route pr_scout logs to stderr at WARNING, or DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


@dataclass(slots=True)
class GatewayTelemetry:
    """Counters describing how often AI output had to be replaced."""

    requests: int = 0
    executor_failures: int = 0
    defaults_served: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.defaults_served > 0 or self.executor_failures > 0
