from __future__ import annotations
import heapq
import itertools
from operator import itemgetter
from typing import Any, Callable, Generic, Iterable, Iterator, List, Sequence, Tuple, TypeVar

__all__ = ["BoundedHeap", "DFA", "ERROR_STATE"]

T = TypeVar("T")

_rank = itemgetter(0, 1)


def _score_of(item: Any) -> float:
    return item.score


class BoundedHeap(Generic[T]):
    """
    Retains the ``capacity`` best items added to it and silently drops the rest.

    Items are ranked by ``key`` (the item's ``score`` attribute by default),
    higher being better. Internally this is a min-heap of
    ``(key, -insertion_number, item)`` entries, so the root is always the
    element that would be evicted next.

    Ties are resolved by insertion order: among items with equal keys the one
    added earlier ranks better. It is extracted first and evicted last, and a
    newcomer that only ties the worst retained item is dropped. Decoding with a
    fixed model and input is therefore reproducible even when scores collide.

    Attributes:
        capacity: Maximum number of retained items.
    """
    def __init__(self, capacity: int, key: Callable[[T], float] = _score_of):
        if capacity < 1:
            raise ValueError(f"BoundedHeap capacity must be at least 1, got {capacity}.")
        self.capacity = capacity
        self._key = key
        self._entries: List[Tuple[float, int, T]] = []
        self._counter = itertools.count()

    def add(self, item: T) -> bool:
        """Insert ``item``; returns False when it was not good enough to be kept."""
        entry = (self._key(item), -next(self._counter), item)
        if len(self._entries) < self.capacity:
            heapq.heappush(self._entries, entry)
            return True
        if _rank(entry) <= _rank(self._entries[0]):
            return False
        heapq.heapreplace(self._entries, entry)
        return True

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def extract(self) -> T:
        """Remove and return the best item."""
        if not self._entries:
            raise IndexError("extract() called on an empty BoundedHeap")
        best = max(self._entries, key=_rank)
        self._entries.remove(best)
        heapq.heapify(self._entries)
        return best[2]

    def peek_worst(self) -> T:
        if not self._entries:
            raise IndexError("peek_worst() called on an empty BoundedHeap")
        return self._entries[0][2]

    def best_first(self) -> List[T]:
        """All retained items, best first, without removing them."""
        return [entry[2] for entry in sorted(self._entries, key=_rank, reverse=True)]

    def size(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self.best_first())


ERROR_STATE = -1


class DFA:
    """
    A deterministic finite automaton over integer symbols.

    ``move_function[state][symbol]`` gives the next state; ``ERROR_STATE`` is a
    sink that rejects every remaining input.
    """
    def __init__(self, initial_state: int, move_function: Sequence[Sequence[int]], accepting_states: Iterable[int]):
        self.initial_state = initial_state
        self.move_function = move_function
        self.accepting_states = frozenset(accepting_states)
        self.state = initial_state

    def reset(self) -> None:
        self.state = self.initial_state

    def read(self, symbol: int) -> bool:
        """Consume one symbol; returns False once the automaton is in the error state."""
        if self.state == ERROR_STATE:
            return False
        self.state = self.move_function[self.state][symbol]
        return self.state != ERROR_STATE

    def accept(self) -> bool:
        return self.state in self.accepting_states

    def run(self, symbols: Iterable[int]) -> bool:
        """Reset, read every symbol and report whether the input is accepted."""
        self.reset()
        for symbol in symbols:
            if not self.read(symbol):
                return False
        return self.accept()
