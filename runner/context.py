"""RunnerContext — settings and logger handed to the application."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from runner.config import Settings


@dataclass(frozen=True)
class RunnerContext:
    """Explicit dependencies for a ``RunnerApp``.

    Built once at startup and passed down; nothing in the core reads a
    module-level settings object.
    """

    settings: Settings
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("runner"))

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RunnerContext:
        return cls(settings=settings or Settings())
