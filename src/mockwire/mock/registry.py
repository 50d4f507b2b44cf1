"""
mockwire Mock Registry

Concurrency-safe store of mock definitions for one server instance.

Access is multiple-reader/single-writer: matching and describe calls run in
parallel with each other, create/delete/clear are exclusive. Nothing inside
the lock performs I/O.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .errors import MockNotFoundError
from .models import MockDefinition

logger = logging.getLogger("mockwire.mock.registry")


class ReadWriteLock:
    """
    Writer-preferring readers/writer lock.

    New readers wait while a writer is waiting so a steady stream of matches
    cannot starve create/delete.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class CallCounter:
    """Non-negative hit counter with atomic increments."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class MockRegistry:
    """
    Store of active mocks keyed by monotonically assigned ids.

    Ids start at 1 and are never reused, not even after clear().

    Example:
        registry = MockRegistry()
        mock_id = registry.create(definition)
        call_count, stored = registry.describe(mock_id)
        registry.delete(mock_id)
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._mocks: Dict[int, Tuple[MockDefinition, CallCounter]] = {}
        self._next_id = 1

    def create(self, definition: MockDefinition) -> int:
        """
        Store a definition under a fresh id.

        Args:
            definition: Validated mock definition (any id it carries is ignored)

        Returns:
            The assigned mock id
        """
        with self._lock.write():
            mock_id = self._next_id
            self._next_id += 1
            self._mocks[mock_id] = (definition.with_id(mock_id), CallCounter())

        logger.info(f"Created mock {mock_id}: {definition.method} with {len(definition.expectations)} expectation(s)")
        return mock_id

    def delete(self, mock_id: int) -> bool:
        """
        Remove a mock. Unknown ids are a no-op.

        Returns:
            True if a mock was removed
        """
        with self._lock.write():
            removed = self._mocks.pop(mock_id, None) is not None

        if removed:
            logger.info(f"Deleted mock {mock_id}")
        else:
            logger.debug(f"Delete of unknown mock {mock_id} ignored")
        return removed

    def clear(self) -> int:
        """
        Remove every mock.

        Returns:
            Number of mocks removed
        """
        with self._lock.write():
            count = len(self._mocks)
            self._mocks.clear()

        logger.info(f"Cleared {count} mock(s)")
        return count

    def describe(self, mock_id: int) -> Tuple[int, MockDefinition]:
        """
        Look up a mock and its call count.

        Returns:
            Tuple of (call_count, definition)

        Raises:
            MockNotFoundError: If no mock has this id
        """
        with self._lock.read():
            entry = self._mocks.get(mock_id)
            if entry is None:
                raise MockNotFoundError(mock_id)
            definition, counter = entry
            return counter.value, definition

    def list(self) -> List[Tuple[int, MockDefinition]]:
        """Snapshot of all mocks as (call_count, definition), ascending id."""
        with self._lock.read():
            return [(counter.value, definition) for definition, counter in self._mocks.values()]

    def find_first(self, predicate: Callable[[MockDefinition], bool]) -> Optional[MockDefinition]:
        """
        Find the lowest-id mock satisfying predicate and count the hit.

        The scan and the increment happen under one read lock, so the
        mock cannot be deleted between being selected and being counted.

        Args:
            predicate: Pure function deciding whether a definition matches

        Returns:
            The matching definition, or None
        """
        with self._lock.read():
            # Ids only grow, so insertion order is ascending id order
            for definition, counter in self._mocks.values():
                if predicate(definition):
                    counter.increment()
                    return definition
        return None

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._mocks)
