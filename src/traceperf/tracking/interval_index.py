"""
Interval index mapping half-open numeric ranges to their owners.

The index answers point containment queries ("which owner's range contains
this address?"). Entries are kept sorted by range start so a lookup only has
to inspect the entries whose start lies within one maximum range size below
the point.
"""

import bisect
import itertools
import logging
from typing import Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

# (start, insertion sequence, size, owner)
_Entry = Tuple[int, int, int, T]


class IntervalIndex(Generic[T]):
    """
    Sorted index of half-open ranges ``[start, start + size)``.

    Each owner may hold exactly one range. Overlapping ranges are accepted
    (the input is not guaranteed to be glitch-free); a lookup that hits more
    than one range returns the owner inserted first and logs a warning.
    """

    def __init__(self, name: str = "interval index"):
        self.name = name
        self._starts: List[Tuple[int, int]] = []
        self._entries: List[_Entry] = []
        self._by_owner: Dict[T, _Entry] = {}
        self._sequence = itertools.count()
        self._max_size = 0
        self.overlap_warnings = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, owner: T) -> bool:
        return owner in self._by_owner

    def insert(self, start: int, size: int, owner: T) -> None:
        """
        Insert the range ``[start, start + size)`` for ``owner``.

        Raises:
            ValueError: If size is not positive or the owner already has a range
        """
        if size <= 0:
            raise ValueError(f"Range size must be positive, got {size} for start {start:#x}")
        if owner in self._by_owner:
            raise ValueError(f"Owner already present in {self.name}: {owner!r}")

        entry = (start, next(self._sequence), size, owner)
        key = (entry[0], entry[1])
        position = bisect.bisect_right(self._starts, key)
        self._starts.insert(position, key)
        self._entries.insert(position, entry)
        self._by_owner[owner] = entry
        self._max_size = max(self._max_size, size)

    def remove(self, owner: T) -> bool:
        """Remove the range held by ``owner``. Returns False if it had none."""
        entry = self._by_owner.pop(owner, None)
        if entry is None:
            return False

        position = bisect.bisect_left(self._starts, (entry[0], entry[1]))
        del self._starts[position]
        del self._entries[position]

        if entry[2] == self._max_size:
            self._max_size = max((e[2] for e in self._entries), default=0)
        return True

    def find(self, point: int, predicate: Optional[Callable[[T], bool]] = None) -> Optional[T]:
        """
        Return the owner whose range contains ``point``, or None.

        Args:
            point: The address (or other coordinate) to look up
            predicate: Optional filter applied to candidate owners; owners for
                which it returns False are skipped

        Returns:
            The matching owner. If several ranges match, the earliest inserted
            owner is returned and the overlap is logged.
        """
        if not self._entries:
            return None

        # Only entries starting in (point - max_size, point] can contain point.
        low = bisect.bisect_right(self._starts, (point - self._max_size, float("inf")))
        high = bisect.bisect_right(self._starts, (point, float("inf")))

        matches = [
            entry for entry in self._entries[low:high]
            if entry[0] <= point < entry[0] + entry[2]
            and (predicate is None or predicate(entry[3]))
        ]
        if not matches:
            return None

        if len(matches) > 1:
            self.overlap_warnings += 1
            logger.warning(
                f"{len(matches)} overlapping ranges in {self.name} contain {point:#x}; "
                f"using the earliest inserted one"
            )
            return min(matches, key=lambda entry: entry[1])[3]

        return matches[0][3]

    def owners(self) -> List[T]:
        """Owners ordered by range start."""
        return [entry[3] for entry in self._entries]
