from __future__ import annotations

import logging
import threading

from autoheal.core.metadata import Locator

log = logging.getLogger(__name__)


class ResolutionCache:
    """Maps normalized element descriptions to their last known-good locator."""

    def __init__(self) -> None:
        self._entries: dict[str, Locator] = {}
        self._lock = threading.Lock()

    @staticmethod
    def normalize(description: str) -> str:
        return description.strip().casefold()

    def get(self, description: str) -> Locator | None:
        with self._lock:
            return self._entries.get(self.normalize(description))

    def put(self, description: str, locator: Locator) -> None:
        with self._lock:
            self._entries[self.normalize(description)] = locator
        log.debug("Cached %s for '%s'", locator, description)

    def evict(self, description: str) -> Locator | None:
        with self._lock:
            return self._entries.pop(self.normalize(description), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        log.info("Selector cache cleared")

    def __contains__(self, description: object) -> bool:
        if not isinstance(description, str):
            return False
        return self.get(description) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
