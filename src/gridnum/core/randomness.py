from __future__ import annotations

import hashlib
import random
from typing import Any, Sequence

from gridnum.contracts import RandomSource


def substream_seed(seed: int, substream_id: str) -> int:
    digest = hashlib.blake2b(f"gridnum:{seed}:{substream_id}".encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


class GameRandom(RandomSource):
    """Coin-toss draws and test generators; a seed makes every substream reproducible."""

    def __init__(self, seed: int | None = None) -> None:
        self.seed = seed
        self._rng = random.Random(seed)

    def rand(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, items: Sequence[Any]) -> Any:
        if not items:
            raise ValueError("cannot choose from an empty sequence")
        return self._rng.choice(items)

    def spawn(self, substream_id: str) -> RandomSource:
        if self.seed is None:
            return GameRandom()
        return GameRandom(substream_seed(self.seed, substream_id))


def gameplay_random() -> GameRandom:
    return GameRandom()


def seeded_random(seed: int) -> GameRandom:
    return GameRandom(seed)
