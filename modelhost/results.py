"""
Host-owned result records copied out of model output items
"""
import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, Iterator


@dataclass(frozen=True)
class ResultRecord:
    """One populated cell: the dimension-0 label and the cell value"""
    ind: int
    val: float


class ResultCollection:
    """
    Ordered, fixed-size collection of :class:`ResultRecord`.

    The collection is built in one piece from two equally long arrays and is
    read-only afterwards.

    Attributes
    ----------
    label : str
        Name of the output item the records were extracted from
    labels : np.ndarray
        External labels (int64), one per record
    values : np.ndarray
        Cell values (float64), one per record

    Examples
    --------
    >>> results = ResultCollection('Res', [1, 2, 3], [1.0, 4.0, 9.0])
    >>> len(results)
    3
    >>> results[2]
    ResultRecord(ind=3, val=9.0)
    """

    def __init__(self, label: str, labels, values):
        labels = np.array(labels, dtype=np.int64).reshape(-1)
        values = np.array(values, dtype=np.float64).reshape(-1)
        if len(labels) != len(values):
            raise ValueError(
                f"labels and values must have equal length ({len(labels)} != {len(values)})"
            )
        labels.setflags(write=False)
        values.setflags(write=False)
        self.label = label
        self._labels = labels
        self._values = values

    @classmethod
    def empty(cls, label: str) -> 'ResultCollection':
        return cls(label, [], [])

    @property
    def labels(self) -> np.ndarray:
        return self._labels

    @property
    def values(self) -> np.ndarray:
        return self._values

    def __len__(self) -> int:
        return len(self._labels)

    def __getitem__(self, i: int) -> ResultRecord:
        return ResultRecord(int(self._labels[i]), float(self._values[i]))

    def __iter__(self) -> Iterator[ResultRecord]:
        for ind, val in zip(self._labels, self._values):
            yield ResultRecord(int(ind), float(val))

    def __eq__(self, other):
        if not isinstance(other, ResultCollection):
            return NotImplemented
        return (self.label == other.label
                and np.array_equal(self._labels, other._labels)
                and np.array_equal(self._values, other._values))

    def __repr__(self):
        return f"ResultCollection(label={self.label!r}, size={len(self)})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'label': self.label,
            'labels': self._labels.tolist(),
            'values': self._values.tolist(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'ResultCollection':
        """Create ResultCollection from dictionary"""
        return cls(d['label'], d.get('labels', []), d.get('values', []))


@dataclass(frozen=True)
class ScalarResult:
    """A single numeric output item copied into host memory"""
    label: str
    value: float


def format_value(val: float) -> str:
    """Render a value without losing digits: integral values as integers, others via repr."""
    val = float(val)
    if val.is_integer():
        return str(int(val))
    return repr(val)
