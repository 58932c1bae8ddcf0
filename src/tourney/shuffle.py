"""
Injectable random source.

Every random decision in draw construction goes through a ``shuffle`` callable
that takes a sequence and returns a new, reordered list. Tests pass a
deterministic one; production uses Fisher-Yates over ``random.Random``.
"""
import random
from typing import Callable, List, Optional, Sequence

Shuffle = Callable[[Sequence], List]


def fisher_yates(items: Sequence, rng: Optional[random.Random] = None) -> List:
    """Return a uniformly shuffled copy of items."""
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def make_shuffle(seed: Optional[int] = None) -> Shuffle:
    """Build a shuffle backed by its own generator; a fixed seed gives repeatable draws."""
    rng = random.Random(seed)

    def shuffle(items: Sequence) -> List:
        return fisher_yates(items, rng)

    return shuffle


def default_shuffle(items: Sequence) -> List:
    return fisher_yates(items)
