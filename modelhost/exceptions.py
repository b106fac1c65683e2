"""
Exception hierarchy for modelhost
"""


class ModelHostError(Exception):
    """Base exception for modelhost errors."""
    pass


class OutOfRangeError(ModelHostError, IndexError):
    """Raised when a dense position lies outside an index set or array dimension."""
    pass


class ExtractionError(ModelHostError):
    """Raised when an output item cannot be copied into host memory."""
    pass


class CursorError(ModelHostError, RuntimeError):
    """Raised on misuse of a sparse array cursor."""
    pass


class StaleArrayError(ModelHostError, RuntimeError):
    """Raised when an array is accessed after its owner released it."""
    pass


class UnrecognizedOutputItem(ModelHostError, UserWarning):
    """Diagnostic for an output item the sink has no extraction for."""

    def __init__(self, label, value):
        self.label = label
        self.value = value
        super().__init__(f"Unknown output data item: {label}={value}")


class ExchangeError(ModelHostError):
    """Raised inside a running model when a handler refuses an item."""
    pass


class SolverInvocationFailure(ModelHostError):
    """Fatal failure of a compile or run call."""
    pass


class CompileError(SolverInvocationFailure):
    """Raised when a model source cannot be compiled or loaded."""
    pass


class RunError(SolverInvocationFailure):
    """Raised when a model run cannot be started or aborts."""
    pass
