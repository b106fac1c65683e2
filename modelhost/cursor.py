"""
Cursor over the populated cells of a SparseArray
"""
from typing import Iterator, List, Optional, Tuple

from .exceptions import CursorError
from .sparse_array import SparseArray


class SparseArrayCursor:
    """
    Single-pass cursor over the populated cells of a :class:`SparseArray`.

    The cursor owns one mutable index buffer. ``first()`` hands it out
    positioned on the first populated cell; ``advance(buffer)`` moves it to
    the next one in the array's storage order and returns False once, when
    no cell is left. A cursor cannot be restarted, and an array accepts only
    one active cursor at a time.

    Examples
    --------
    >>> with SparseArrayCursor(array) as cursor:
    ...     indices = cursor.first()
    ...     while indices is not None:
    ...         print(indices, array.get_as_real(indices))
    ...         if not cursor.advance(indices):
    ...             break
    """

    def __init__(self, array: SparseArray):
        self._array = array
        self._indices = None
        self._row = 0
        self._started = False
        self._exhausted = False

    @property
    def array(self) -> SparseArray:
        return self._array

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def first(self) -> Optional[List[int]]:
        """
        Position the cursor on the first populated cell.

        Returns
        -------
        list of int or None
            The cursor's index buffer, or None if the array has no populated cell
        """
        if self._started:
            raise CursorError("cursor has already been started; create a new cursor")
        self._array._acquire_cursor(self)
        self._started = True
        indices = self._array.first_entry()
        if indices is None:
            self._finish()
            return None
        self._indices = indices
        self._row = 0
        return indices

    def advance(self, indices: List[int]) -> bool:
        """
        Move ``indices`` in place to the next populated cell.

        Returns False when the traversal is complete. The buffer content is
        unspecified after that and further calls raise CursorError.
        """
        if not self._started:
            raise CursorError("advance() called before first()")
        if self._exhausted:
            raise CursorError("cursor is exhausted")
        if indices is not self._indices:
            raise CursorError("index buffer was not produced by this cursor")
        self._row += 1
        if not self._array.entry_at(self._row, indices):
            self._finish()
            return False
        return True

    def close(self) -> None:
        """Release the array without finishing the traversal."""
        if self._started and not self._exhausted:
            self._finish()

    def _finish(self) -> None:
        self._exhausted = True
        self._array._release_cursor(self)

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        indices = self.first()
        while indices is not None:
            yield tuple(indices)
            if not self.advance(indices):
                return

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self):
        if self._exhausted:
            state = 'exhausted'
        elif self._started:
            state = f'at {self._indices}'
        else:
            state = 'not started'
        return f"<SparseArrayCursor {state}>"
