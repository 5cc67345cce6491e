# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Candidate draw — pure computation, no I/O.

Storage returns the whole eligible pool in a stable order; the sampler
picks from it. Seeding the sampler makes the picked subset reproducible in
tests without relying on the database's own random().
"""

import random
import threading
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


class CandidateSampler:
    """Uniform random draw without replacement."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

    def pick(self, pool: Sequence[T], limit: int) -> list[T]:
        if limit <= 0 or not pool:
            return []
        if len(pool) <= limit:
            chosen = list(pool)
            with self._lock:
                self._rng.shuffle(chosen)
            return chosen
        with self._lock:
            return self._rng.sample(list(pool), limit)
