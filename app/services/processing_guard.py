# app/services/processing_guard.py
import logging
from contextlib import contextmanager
from typing import Hashable, Iterator, Set

from app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


class ProcessingGuard:
    """
    Registry of in-flight submit keys for this process.

    hold() checks and registers a key without awaiting in between, so two
    coroutines of the same event loop can never both enter for one key.
    Only covers a single process; multiple workers would need a shared lock.
    """

    def __init__(self) -> None:
        self._active: Set[Hashable] = set()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        if key in self._active:
            logger.info(f"Rejecting concurrent request for {key}")
            raise ConflictError("A submission for this student and category is already being processed")
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)

    def is_active(self, key: Hashable) -> bool:
        return key in self._active

    def __len__(self) -> int:
        return len(self._active)
