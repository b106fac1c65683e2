import pytest

from modelhost import CursorError, IndexSet, SparseArray, SparseArrayCursor


def _drain(array):
    visits = []
    advance_results = []
    with SparseArrayCursor(array) as cursor:
        indices = cursor.first()
        while indices is not None:
            visits.append(tuple(indices))
            ok = cursor.advance(indices)
            advance_results.append(ok)
            if not ok:
                break
    return visits, advance_results


def test_visits_every_populated_cell_once(grid):
    visits, advance_results = _drain(grid)
    assert len(visits) == grid.size
    assert len(set(visits)) == grid.size
    assert set(visits) == {(0, 0), (1, 1), (2, 1)}
    assert advance_results.count(False) == 1
    assert advance_results[-1] is False


def test_first_on_empty_array_returns_none():
    arr = SparseArray([IndexSet([1, 2, 3])], [], [])
    cursor = SparseArrayCursor(arr)
    assert cursor.first() is None
    assert cursor.exhausted


def test_single_cell_array():
    arr = SparseArray.from_entries([IndexSet([1, 2, 3])], {2: 4.0})
    visits, advance_results = _drain(arr)
    assert visits == [(1,)]
    assert advance_results == [False]


def test_cursor_is_not_restartable(squares):
    cursor = SparseArrayCursor(squares)
    cursor.first()
    with pytest.raises(CursorError):
        cursor.first()


def test_advance_after_exhaustion_raises():
    arr = SparseArray.from_entries([IndexSet([1])], {1: 1.0})
    cursor = SparseArrayCursor(arr)
    indices = cursor.first()
    assert cursor.advance(indices) is False
    with pytest.raises(CursorError):
        cursor.advance(indices)


def test_advance_before_first_raises(squares):
    with pytest.raises(CursorError):
        SparseArrayCursor(squares).advance([0])


def test_advance_rejects_foreign_buffer(squares):
    cursor = SparseArrayCursor(squares)
    cursor.first()
    with pytest.raises(CursorError):
        cursor.advance([0])


def test_exhaustion_releases_array(squares):
    visits, _ = _drain(squares)
    assert len(visits) == 14
    again, _ = _drain(squares)
    assert again == visits


def test_iteration_yields_snapshots(grid):
    cells = list(SparseArrayCursor(grid))
    assert len(cells) == 3
    assert all(isinstance(cell, tuple) for cell in cells)
