"""
Index sets and dense-position to label resolution
"""
import numpy as np
from typing import Iterable, Iterator, Optional

from .exceptions import OutOfRangeError


class IndexSet:
    """
    Ordered, deduplicated set of integer labels indexing one array dimension.

    Dense position ``p`` (0 <= p < len(set)) maps to the ``p``-th label in
    insertion order. Duplicate labels keep their first position.

    Parameters
    ----------
    labels : iterable of int
        External labels in dimension order
    name : str, optional
        Name used in diagnostics

    Examples
    --------
    >>> numbers = IndexSet([3, 1, 3, 7], name='Numbers')
    >>> len(numbers)
    3
    >>> label_of(numbers, 1)
    1
    >>> numbers.position_of(7)
    2
    """

    def __init__(self, labels: Iterable[int], name: Optional[str] = None):
        self.name = name
        positions = {}
        ordered = []
        for label in labels:
            label = int(label)
            if label not in positions:
                positions[label] = len(ordered)
                ordered.append(label)
        self._positions = positions
        self._labels = np.array(ordered, dtype=np.int64)
        self._labels.setflags(write=False)

    @classmethod
    def range(cls, first: int, last: int, name: Optional[str] = None) -> 'IndexSet':
        """Create the set ``first..last`` (both inclusive)."""
        return cls(range(first, last + 1), name=name)

    @property
    def labels(self) -> np.ndarray:
        """Read-only view of the labels in dense order"""
        return self._labels

    def position_of(self, label: int) -> int:
        """Dense position of ``label``; raises KeyError when absent."""
        try:
            return self._positions[int(label)]
        except KeyError:
            raise KeyError(f"label {label} is not in index set {self._display_name()}") from None

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[int]:
        return (int(label) for label in self._labels)

    def __contains__(self, label) -> bool:
        return int(label) in self._positions

    def __eq__(self, other):
        if not isinstance(other, IndexSet):
            return NotImplemented
        return np.array_equal(self._labels, other._labels)

    def __hash__(self):
        return hash(self._labels.tobytes())

    def _display_name(self) -> str:
        return self.name if self.name else '<anonymous>'

    def __repr__(self):
        return f"IndexSet(name={self.name!r}, size={len(self)})"

    def __str__(self):
        return "{" + ",".join(str(label) for label in self._labels) + "}"


def label_of(index_set: IndexSet, position: int) -> int:
    """
    Resolve a dense position to its external label.

    Parameters
    ----------
    index_set : IndexSet
        Set indexing the dimension
    position : int
        Zero-based dense position

    Returns
    -------
    int
        The label stored at ``position``

    Raises
    ------
    OutOfRangeError
        If ``position`` is not in ``0 .. len(index_set) - 1``
    """
    if isinstance(position, (bool, np.bool_)) or not isinstance(position, (int, np.integer)):
        raise OutOfRangeError(f"dense position must be an integer, got {position!r}")
    size = len(index_set)
    if position < 0 or position >= size:
        raise OutOfRangeError(
            f"dense position {position} out of range for index set "
            f"{index_set._display_name()} of size {size}"
        )
    return int(index_set.labels[position])
