"""Chapter cache shared by concurrent resolvers.

One reader-writer lock guards the map: lookups take the shared side, inserts
take the exclusive side. Loading a missing chapter happens outside the lock,
so two callers that miss on the same key at the same time both read and parse
the file. Loads are deterministic, so the second insert is dropped and the
first stored record is kept. No single-flight coordination is done; revisit
if chapter loads ever become expensive.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Hashable, Optional

from kjvtools.model import Chapter


class ReadWriteLock:
    """Many readers or one writer.

    A waiting writer blocks new readers, so a steady stream of lookups cannot
    hold off an insert. Writers wait for active readers to drain.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class ChapterCache:
    """(OSIS, chapter) -> Chapter. Stored records are never replaced."""

    def __init__(self):
        self._lock = ReadWriteLock()
        self._chapters: dict[Hashable, Chapter] = {}

    def get(self, key: Hashable) -> Optional[Chapter]:
        with self._lock.read_locked():
            return self._chapters.get(key)

    def put(self, key: Hashable, chapter: Chapter) -> Chapter:
        """Insert unless already present. Returns the record that is stored."""
        with self._lock.write_locked():
            return self._chapters.setdefault(key, chapter)

    def get_or_load(self, key: Hashable, load: Callable[[], Chapter]) -> Chapter:
        cached = self.get(key)
        if cached is not None:
            return cached
        # load() may raise; nothing is stored in that case
        return self.put(key, load())

    def __contains__(self, key: Hashable) -> bool:
        with self._lock.read_locked():
            return key in self._chapters

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._chapters)
