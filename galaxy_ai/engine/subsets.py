"""
Combinatorial subset search.

Every "choose some of these cards" decision reduces to enumerating subsets
of a candidate list and scoring each one. SubsetSearch does the enumeration
once, by include/exclude recursion, and leaves building and scoring the
concrete choice to a callback supplied by the decision handler.
"""
from math import comb
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar('T')

# Returns the score of a subset, or None if the subset is illegal
Materializer = Callable[[List[T]], Optional[float]]


class SubsetSearch:
    """
    Best-subset search over a candidate list.

    Subsets are visited with the current item included before it is
    excluded, and a later subset replaces the best only with a strictly
    higher score, so among equal scores the first visited wins.

    Attributes:
        materialize: Callback building and scoring a subset
        best: Best subset found so far
        best_score: Its score
        evaluated: Number of subsets handed to the callback
    """

    def __init__(self, materialize: Materializer):
        self.materialize = materialize
        self.best: Optional[List[T]] = None
        self.best_score: Optional[float] = None
        self.evaluated = 0

    def run(self, items: Sequence[T], count: int) -> Optional[List[T]]:
        """
        Search all subsets of exactly ``count`` items.

        Args:
            items: Candidate items
            count: Number of items to choose

        Returns:
            Best subset found so far (None if nothing legal was found)
        """
        if 0 <= count <= len(items):
            self._recurse(list(items), 0, count, [])
        return self.best

    def run_range(self, items: Sequence[T], low: int, high: int) -> Optional[List[T]]:
        """Search all subsets with between ``low`` and ``high`` items."""
        for count in range(max(low, 0), min(high, len(items)) + 1):
            self.run(items, count)
        return self.best

    def _recurse(self, items: List[T], pos: int, remaining: int, chosen: List[T]) -> None:
        if remaining == 0:
            self.evaluated += 1
            score = self.materialize(list(chosen))
            if score is not None and (self.best_score is None or score > self.best_score):
                self.best_score = score
                self.best = list(chosen)
            return

        # Not enough items left to fill the remaining slots
        if len(items) - pos < remaining:
            return

        chosen.append(items[pos])
        self._recurse(items, pos + 1, remaining - 1, chosen)
        chosen.pop()

        self._recurse(items, pos + 1, remaining, chosen)

    @property
    def found(self) -> bool:
        return self.best is not None


def best_subset(items: Sequence[T], count: int, materialize: Materializer) -> Optional[List[T]]:
    """Convenience wrapper: best subset of exactly ``count`` items."""
    return SubsetSearch(materialize).run(items, count)


def choose(n: int, k: int) -> int:
    """Binomial coefficient (0 when k > n)."""
    if k < 0 or k > n:
        return 0
    return comb(n, k)
