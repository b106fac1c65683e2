"""
Read-only sparse multi-dimensional arrays handed out by the model runtime
"""
import numpy as np
from scipy import sparse
from typing import Dict, List, Optional, Sequence, Tuple

from .exceptions import CursorError, OutOfRangeError, StaleArrayError
from .index_set import IndexSet
from .results import format_value


class SparseArray:
    """
    Multi-dimensional array holding values only for its populated cells.

    Every dimension is indexed by an :class:`IndexSet`; cells are addressed by
    dense positions, one per dimension. Unpopulated cells read as ``default``.
    Populated cells are kept in one fixed storage order which traversal
    follows. Callers must not rely on that order being row-major.

    Parameters
    ----------
    index_sets : sequence of IndexSet
        One index set per dimension
    coords : array_like of int, shape (nnz, ndim)
        Dense positions of the populated cells
    values : array_like of float, shape (nnz,)
        Values of the populated cells
    default : float, optional
        Value of unpopulated cells (default: 0.0)
    name : str, optional
        Name used in diagnostics
    """

    def __init__(
        self,
        index_sets: Sequence[IndexSet],
        coords,
        values,
        default: float = 0.0,
        name: Optional[str] = None,
    ):
        if len(index_sets) == 0:
            raise ValueError("SparseArray needs at least one dimension")
        self._index_sets = tuple(index_sets)
        self._shape = tuple(len(s) for s in self._index_sets)
        self.default = float(default)
        self.name = name

        ndim = len(self._shape)
        coords = np.asarray(coords, dtype=np.int64).reshape(-1, ndim)
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        if len(coords) != len(values):
            raise ValueError(
                f"coords and values disagree: {len(coords)} cells vs {len(values)} values"
            )

        for dim, extent in enumerate(self._shape):
            column = coords[:, dim]
            if len(column) and (column.min() < 0 or column.max() >= extent):
                raise OutOfRangeError(
                    f"populated cell outside dimension {dim} of size {extent}"
                )

        if len(coords):
            order = np.lexsort(coords.T[::-1])
            coords = coords[order]
            values = values[order]
            if np.any(np.all(coords[1:] == coords[:-1], axis=1)):
                raise ValueError("duplicate populated cell")

        self._coords = coords
        self._values = values
        for arr in (self._coords, self._values):
            arr.setflags(write=False)
        self._rows = {tuple(row): i for i, row in enumerate(coords.tolist())}

        self._alive = True
        self._cursor = None

    @classmethod
    def from_entries(
        cls,
        index_sets: Sequence[IndexSet],
        entries: Dict[Tuple[int, ...], float],
        default: float = 0.0,
        name: Optional[str] = None,
    ) -> 'SparseArray':
        """
        Build an array from a mapping of label tuples to values.

        Keys are external labels, not dense positions. A bare int key is
        accepted for one-dimensional arrays.
        """
        coords = []
        values = []
        for key, value in entries.items():
            if not isinstance(key, tuple):
                key = (key,)
            if len(key) != len(index_sets):
                raise ValueError(f"key {key} does not match {len(index_sets)} dimensions")
            coords.append([s.position_of(label) for s, label in zip(index_sets, key)])
            values.append(value)
        return cls(index_sets, coords, values, default=default, name=name)

    @classmethod
    def from_dense(
        cls,
        index_sets: Sequence[IndexSet],
        data,
        default: float = 0.0,
        name: Optional[str] = None,
    ) -> 'SparseArray':
        """Build an array from a dense ndarray; cells equal to ``default`` stay unpopulated."""
        data = np.asarray(data, dtype=np.float64)
        shape = tuple(len(s) for s in index_sets)
        if data.shape != shape:
            raise ValueError(f"dense data has shape {data.shape}, index sets give {shape}")
        coords = np.argwhere(data != default)
        return cls(index_sets, coords, data[tuple(coords.T)], default=default, name=name)

    @classmethod
    def from_scipy(
        cls,
        index_sets: Sequence[IndexSet],
        matrix,
        name: Optional[str] = None,
    ) -> 'SparseArray':
        """Build a 1-D or 2-D array from the explicit entries of a scipy sparse matrix."""
        if not sparse.issparse(matrix):
            raise TypeError("matrix must be a scipy sparse matrix or array")
        coo = sparse.coo_array(matrix)
        coo.sum_duplicates()
        if len(index_sets) == 1:
            if coo.shape[0] != 1:
                raise ValueError("a one-dimensional array needs a single-row matrix")
            coords = np.asarray(coo.col).reshape(-1, 1)
            expected = (1, len(index_sets[0]))
        elif len(index_sets) == 2:
            coords = np.column_stack([coo.row, coo.col])
            expected = (len(index_sets[0]), len(index_sets[1]))
        else:
            raise ValueError("scipy conversion supports one or two dimensions")
        if coo.shape != expected:
            raise ValueError(f"matrix has shape {coo.shape}, index sets give {expected}")
        return cls(index_sets, coords, coo.data, name=name)

    def to_scipy(self) -> sparse.coo_array:
        """Export the populated cells of a 1-D or 2-D array as a COO array."""
        self._check_alive()
        if self.ndim == 1:
            rows = np.zeros(self.size, dtype=np.int64)
            cols = self._coords[:, 0].copy()
            shape = (1, self._shape[0])
        elif self.ndim == 2:
            rows = self._coords[:, 0].copy()
            cols = self._coords[:, 1].copy()
            shape = self._shape
        else:
            raise ValueError("scipy conversion supports one or two dimensions")
        return sparse.coo_array((self._values.copy(), (rows, cols)), shape=shape)

    @property
    def index_sets(self) -> Tuple[IndexSet, ...]:
        """Index set of every dimension"""
        self._check_alive()
        return self._index_sets

    @property
    def shape(self) -> Tuple[int, ...]:
        self._check_alive()
        return self._shape

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def size(self) -> int:
        """Number of populated cells"""
        self._check_alive()
        return len(self._values)

    @property
    def is_alive(self) -> bool:
        return self._alive

    def get_as_real(self, indices: Sequence[int]) -> float:
        """
        Value at the cell addressed by dense ``indices``.

        Unpopulated cells yield ``default``.

        Raises
        ------
        OutOfRangeError
            If an index lies outside its dimension
        """
        self._check_alive()
        row = self._rows.get(self._checked(indices))
        if row is None:
            return self.default
        return float(self._values[row])

    # Traversal primitives. Only SparseArrayCursor calls these.

    def first_entry(self) -> Optional[List[int]]:
        """Fresh index buffer at the first populated cell, or None if there is none."""
        self._check_alive()
        if len(self._values) == 0:
            return None
        return self._coords[0].tolist()

    def entry_at(self, row: int, indices: List[int]) -> bool:
        """Move ``indices`` in place to the ``row``-th populated cell in storage order."""
        self._check_alive()
        if row < 0 or row >= len(self._values):
            return False
        indices[:] = self._coords[row].tolist()
        return True

    def _checked(self, indices: Sequence[int]) -> Tuple[int, ...]:
        if len(indices) != self.ndim:
            raise OutOfRangeError(
                f"expected {self.ndim} indices, got {len(indices)}"
            )
        for dim, (index, extent) in enumerate(zip(indices, self._shape)):
            if index < 0 or index >= extent:
                raise OutOfRangeError(
                    f"index {index} out of range for dimension {dim} of size {extent}"
                )
        return tuple(int(i) for i in indices)

    def _acquire_cursor(self, cursor) -> None:
        self._check_alive()
        if self._cursor is not None and self._cursor is not cursor:
            raise CursorError(f"array {self._display_name()} already has an active cursor")
        self._cursor = cursor

    def _release_cursor(self, cursor) -> None:
        if self._cursor is cursor:
            self._cursor = None

    def _invalidate(self) -> None:
        """Called by the runtime once the handler that received this array returns."""
        self._alive = False
        self._cursor = None

    def _check_alive(self) -> None:
        if not self._alive:
            raise StaleArrayError(
                f"array {self._display_name()} is no longer valid; copy data out during the callback"
            )

    def _display_name(self) -> str:
        return self.name if self.name else '<anonymous>'

    def __repr__(self):
        if not self._alive:
            return f"<SparseArray {self._display_name()} (released)>"
        return f"<SparseArray {self._display_name()} shape={self._shape} size={self.size}>"

    def __str__(self):
        if not self._alive:
            return repr(self)
        cells = []
        for coord, value in zip(self._coords, self._values):
            labels = ",".join(
                str(int(s.labels[i])) for s, i in zip(self._index_sets, coord)
            )
            cells.append(f"({labels},{format_value(value)})")
        return "[" + ",".join(cells) + "]"
