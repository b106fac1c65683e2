"""
modelhost Python Package

Host-side glue for an embedded model runtime: compile and run a model, and
copy the sparse arrays it reports into host-owned results via callbacks.
"""

from .index_set import IndexSet, label_of
from .sparse_array import SparseArray
from .cursor import SparseArrayCursor
from .results import ResultRecord, ResultCollection, ScalarResult, format_value
from .sink import ResultSink, OutputItemKind, SinkState
from .parameters import ExecParameters, callback_destination
from .runtime import Runtime, CompiledModel, Model, ModelContext, RunStatus, parse_exec_params
from .coordinator import RunCoordinator, RunOutcome, run_model
from .exceptions import (
    ModelHostError, OutOfRangeError, ExtractionError, CursorError, StaleArrayError,
    UnrecognizedOutputItem, ExchangeError, SolverInvocationFailure, CompileError, RunError,
)

__version__ = "0.1.0"

__all__ = [
    'IndexSet',
    'label_of',
    'SparseArray',
    'SparseArrayCursor',
    'ResultRecord',
    'ResultCollection',
    'ScalarResult',
    'format_value',
    'ResultSink',
    'OutputItemKind',
    'SinkState',
    'ExecParameters',
    'callback_destination',
    'Runtime',
    'CompiledModel',
    'Model',
    'ModelContext',
    'RunStatus',
    'parse_exec_params',
    'RunCoordinator',
    'RunOutcome',
    'run_model',
    '__version__',
    # Errors
    'ModelHostError',
    'OutOfRangeError',
    'ExtractionError',
    'CursorError',
    'StaleArrayError',
    'UnrecognizedOutputItem',
    'ExchangeError',
    'SolverInvocationFailure',
    'CompileError',
    'RunError',
]
