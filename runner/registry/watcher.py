"""SourceWatcher — detects edits to a directory task source."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from runner.registry.sources import DirectoryTaskSource

logger = logging.getLogger(__name__)


class SourceWatcher:
    """Polls a ``DirectoryTaskSource`` fingerprint and calls *on_change* when it moves.

    ``check()`` is meant to run as a periodic scheduler job. Several edits
    between two checks collapse into one callback.
    """

    def __init__(
        self,
        source: DirectoryTaskSource,
        on_change: Callable[[], Awaitable[object]],
    ) -> None:
        self._source = source
        self._on_change = on_change
        self._last = source.fingerprint()

    async def check(self) -> bool:
        """Compare against the last snapshot. Returns True if a reload ran."""
        current = self._source.fingerprint()
        if current == self._last:
            return False
        self._last = current
        logger.info("Task files changed in %s, reloading", self._source.root)
        await self._on_change()
        return True
