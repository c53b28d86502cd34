from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class GameLockRegistry:
    """One mutex per game id; submissions for different games never contend.

    Entries are weak: a game's lock lives only while some caller holds or
    waits on it, so finished games do not pile up in the registry.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, game_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(game_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[game_id] = lock
            return lock

    @contextmanager
    def hold(self, game_id: str) -> Iterator[None]:
        lock = self.lock_for(game_id)
        with lock:
            yield
