"""selection.py — Uniform random worker selection over the healthy set."""

from __future__ import annotations

import random
from typing import Optional, Sequence

from dispatch_consumer.errors import NoHealthyWorker
from dispatch_consumer.registry import WorkerDescriptor

__all__ = ["WorkerSelector"]


class WorkerSelector:
    """Picks one worker uniformly at random.

    The random source is injected so tests can pin the sequence; no session
    affinity, weighting or load heuristics are applied.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def seeded(cls, seed: Optional[int]) -> "WorkerSelector":
        return cls(random.Random(seed))

    def select(self, workers: Sequence[WorkerDescriptor]) -> WorkerDescriptor:
        if not workers:
            raise NoHealthyWorker("no workers to select from")
        if len(workers) == 1:
            return workers[0]
        return workers[self._rng.randrange(len(workers))]
