"""
High-level run coordination: compile, configure, run, reset
"""
from pathlib import Path
from typing import Optional, TextIO, Union

from .logging_config import get_logger
from .parameters import ExecParameters
from .runtime import Model, RunStatus, Runtime
from .sink import ResultSink

logger = get_logger(__name__)

DEFAULT_HANDLER_NAME = 'resultsink'


class RunOutcome:
    """
    Outcome of a coordinated run.

    Attributes
    ----------
    status : RunStatus
        ``OK`` or ``EXCHANGE_FAILED``
    exit_code : int
        Exit code returned by the model
    model : Model
        The model that ran; still holds its resources until reset
    """

    def __init__(self, status: RunStatus, exit_code: int, model: Model):
        self.status = status
        self.exit_code = exit_code
        self.model = model

    @property
    def ok(self) -> bool:
        """True if the run finished and every output item was accepted"""
        return self.status is RunStatus.OK

    def __repr__(self):
        return f"RunOutcome(status='{self.status.value}', exit_code={self.exit_code})"


class RunCoordinator:
    """
    Sequences compile, configure, run for one model and a result sink.

    Compile and run failures propagate as :class:`CompileError` /
    :class:`RunError`; nothing after the failing phase is executed. The
    coordinator never resets on its own: the host inspects the outcome and
    then calls :meth:`reset`.

    Parameters
    ----------
    runtime : Runtime, optional
        Runtime to compile and load with. A new one is created if None.

    Examples
    --------
    >>> coordinator = RunCoordinator()
    >>> sink = ResultSink()
    >>> outcome = coordinator.execute("calctest.py", sink, ExecParameters(NUM=200))
    >>> if outcome.ok:
    ...     print(f"Found {len(sink['Res'])} numbers")
    >>> coordinator.reset()
    """

    def __init__(self, runtime: Optional[Runtime] = None):
        self.runtime = runtime if runtime is not None else Runtime()
        self._model: Optional[Model] = None

    @property
    def model(self) -> Optional[Model]:
        """Model of the last run, until :meth:`reset` is called"""
        return self._model

    def execute(
        self,
        source: Union[str, Path],
        sink: ResultSink,
        params: Optional[ExecParameters] = None,
        handler_name: str = DEFAULT_HANDLER_NAME,
        stream: Optional[TextIO] = None,
    ) -> RunOutcome:
        """
        Compile ``source``, route its output to ``sink`` and run it.

        Parameters
        ----------
        source : str or Path
            Model source file
        sink : ResultSink
            Handler receiving the output items
        params : ExecParameters, optional
            Model parameters; SOLFILE is set to the sink's destination
        handler_name : str
            Name the sink is bound under
        stream : TextIO, optional
            Where model output is written (default: stdout)

        Returns
        -------
        RunOutcome
        """
        if self._model is not None:
            raise RuntimeError("previous model has not been reset")
        if params is None:
            params = ExecParameters()

        compiled = self.runtime.compile(source)
        model = self.runtime.load_model(compiled)

        model.exec_params = params.with_callback(handler_name).to_exec_string()
        model.bind(handler_name, sink)
        self._model = model

        status = model.run(stream=stream)
        if status is not RunStatus.OK:
            logger.warning("Model %s: data exchange failed", model.name)
        return RunOutcome(status, model.exit_code, model)

    def reset(self) -> None:
        """Release the resources held by the last model."""
        if self._model is not None:
            self._model.reset()
            self._model = None


def run_model(
    source: Union[str, Path],
    params: Optional[ExecParameters] = None,
    sink: Optional[ResultSink] = None,
) -> ResultSink:
    """
    Convenience function to run a model without managing a coordinator.

    Returns the sink holding the extracted results. The model is reset
    before returning, whatever the outcome of the data exchange.

    Examples
    --------
    >>> from modelhost import run_model, ExecParameters
    >>> sink = run_model("calctest.py", ExecParameters(NUM=200))
    >>> len(sink['Res'])
    14
    """
    if sink is None:
        sink = ResultSink()
    coordinator = RunCoordinator()
    outcome = coordinator.execute(source, sink, params)
    coordinator.reset()
    if not outcome.ok:
        logger.warning("Results of %s are incomplete", Path(source).name)
    return sink
