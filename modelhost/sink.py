"""
Callback target receiving named output items from a running model
"""
import numpy as np
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .cursor import SparseArrayCursor
from .exceptions import (
    CursorError, ExtractionError, OutOfRangeError, StaleArrayError,
    UnrecognizedOutputItem,
)
from .index_set import label_of
from .logging_config import get_logger
from .results import ResultCollection, ScalarResult
from .sparse_array import SparseArray

logger = get_logger(__name__)


class OutputItemKind(Enum):
    """Output item kinds the sink knows how to extract"""
    SPARSE_VECTOR = 'sparse_vector'
    SCALAR = 'scalar'


class SinkState(Enum):
    IDLE = 'idle'
    SIZING = 'sizing'
    DRAINING = 'draining'
    DONE = 'done'


_TRANSITIONS = {
    SinkState.IDLE: {SinkState.SIZING},
    SinkState.SIZING: {SinkState.DRAINING, SinkState.IDLE},
    SinkState.DRAINING: {SinkState.DONE, SinkState.IDLE},
    SinkState.DONE: {SinkState.IDLE},
}

DEFAULT_KINDS = {'Res': OutputItemKind.SPARSE_VECTOR}

Extracted = Union[ResultCollection, ScalarResult]


class ResultSink:
    """
    Handler that copies recognized output items into host-owned results.

    The runtime calls :meth:`receive` once per output item while the model
    runs. Items whose label is registered are extracted according to their
    :class:`OutputItemKind`; other items are reported as diagnostics and
    skipped. A failed extraction stores nothing and makes ``receive``
    return False, which aborts the model's reporting.

    Parameters
    ----------
    kinds : mapping of str to OutputItemKind, optional
        Recognized labels (default: ``{'Res': SPARSE_VECTOR}``)

    Examples
    --------
    >>> sink = ResultSink()
    >>> model.bind('resultsink', sink)
    >>> model.exec_params = "NUM=200,SOLFILE='python:resultsink'"
    >>> model.run()
    >>> len(sink['Res'])
    14
    """

    def __init__(self, kinds: Optional[Mapping[str, OutputItemKind]] = None):
        self._kinds = dict(DEFAULT_KINDS if kinds is None else kinds)
        self._results: Dict[str, Extracted] = {}
        self.state = SinkState.IDLE
        self.diagnostics: List[UnrecognizedOutputItem] = []
        self.failures: Dict[str, Exception] = {}

    @property
    def kinds(self) -> Dict[str, OutputItemKind]:
        return dict(self._kinds)

    @property
    def results(self) -> Dict[str, Extracted]:
        """Snapshot of the stored results keyed by label"""
        return dict(self._results)

    def receive(self, label: str, value: Any) -> bool:
        """
        Accept one output item.

        Returns
        -------
        bool
            False if a recognized item could not be extracted, True otherwise
        """
        kind = self._kinds.get(label)
        if kind is None:
            diagnostic = UnrecognizedOutputItem(label, value)
            logger.warning("%s", diagnostic)
            self.diagnostics.append(diagnostic)
            return True

        extract = self._EXTRACTORS[kind]
        try:
            result = extract(self, label, value)
        except (OutOfRangeError, ExtractionError, StaleArrayError, CursorError) as e:
            logger.error("Extraction of '%s' failed: %s", label, e)
            self.failures[label] = e
            self._transition(SinkState.IDLE)
            return False
        except Exception:
            self.state = SinkState.IDLE
            raise

        self._results[label] = result
        self.failures.pop(label, None)
        self._transition(SinkState.DONE)
        logger.debug("Stored output item '%s' (%s)", label, kind.value)
        return True

    def _transition(self, new_state: SinkState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal sink transition {self.state.name} -> {new_state.name}")
        self.state = new_state

    def _begin(self) -> None:
        if self.state is SinkState.DONE:
            self._transition(SinkState.IDLE)
        self._transition(SinkState.SIZING)

    def _extract_sparse_vector(self, label: str, value: Any) -> ResultCollection:
        self._begin()
        if not isinstance(value, SparseArray):
            raise ExtractionError(
                f"'{label}' is a {type(value).__name__}, expected a sparse array"
            )

        size = value.size
        labels = np.empty(size, dtype=np.int64)
        values = np.empty(size, dtype=np.float64)
        self._transition(SinkState.DRAINING)

        dim0 = value.index_sets[0]
        count = 0
        with SparseArrayCursor(value) as cursor:
            indices = cursor.first()
            while indices is not None:
                if count == size:
                    raise ExtractionError(f"'{label}' has more cells than its reported size {size}")
                labels[count] = label_of(dim0, indices[0])
                values[count] = value.get_as_real(indices)
                count += 1
                if not cursor.advance(indices):
                    break

        if count != size:
            raise ExtractionError(f"'{label}' reported {size} cells but yielded {count}")
        return ResultCollection(label, labels, values)

    def _extract_scalar(self, label: str, value: Any) -> ScalarResult:
        self._begin()
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, float, np.number)):
            raise ExtractionError(
                f"'{label}' is a {type(value).__name__}, expected a number"
            )
        self._transition(SinkState.DRAINING)
        return ScalarResult(label, float(value))

    _EXTRACTORS: Dict[OutputItemKind, Callable[['ResultSink', str, Any], Extracted]] = {
        OutputItemKind.SPARSE_VECTOR: _extract_sparse_vector,
        OutputItemKind.SCALAR: _extract_scalar,
    }

    def get(self, label: str, default=None):
        return self._results.get(label, default)

    def __getitem__(self, label: str) -> Extracted:
        return self._results[label]

    def __contains__(self, label: str) -> bool:
        return label in self._results

    def clear(self) -> None:
        """Drop stored results and diagnostics."""
        self._results.clear()
        self.diagnostics.clear()
        self.failures.clear()
        self.state = SinkState.IDLE

    def __repr__(self):
        return (f"ResultSink(kinds={sorted(self._kinds)}, "
                f"stored={sorted(self._results)}, "
                f"diagnostics={len(self.diagnostics)})")
