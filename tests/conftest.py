import pytest
from pathlib import Path

from modelhost import IndexSet, SparseArray

CALCTEST = Path(__file__).resolve().parent.parent / "modelhost" / "models" / "calctest.py"


@pytest.fixture
def calctest_path():
    return CALCTEST


@pytest.fixture
def squares():
    """Dense positions 0..13 labelled 1..14, holding label squared."""
    numbers = IndexSet.range(1, 14, name="Numbers")
    return SparseArray.from_entries([numbers], {(i,): float(i * i) for i in range(1, 15)}, name="Res")


@pytest.fixture
def grid():
    rows = IndexSet([10, 20, 30], name="Rows")
    cols = IndexSet([5, 6], name="Cols")
    return SparseArray.from_entries(
        [rows, cols],
        {(30, 6): 3.5, (10, 5): 1.0, (20, 6): -2.0},
        name="Grid",
    )


class RecordingHandler:
    """Handler that keeps copies of what it receives."""

    def __init__(self, answer=True):
        self.answer = answer
        self.received = []

    def receive(self, label, value):
        self.received.append((label, str(value)))
        return self.answer


@pytest.fixture
def recording_handler():
    return RecordingHandler()


def write_model(tmp_path, body, name="testmodel"):
    path = tmp_path / f"{name}.py"
    path.write_text(body, encoding="utf-8")
    return path
