"""
Embedded model runtime

Models are Python source files defining a ``PARAMETERS`` dict of defaults
and a ``main(ctx)`` function. The runtime compiles a source into a
:class:`CompiledModel`, loads it as a :class:`Model`, and runs it with the
parameters given in ``Model.exec_params``. Output items reach the host
through ``ctx.initializations_to(destination, items)`` where ``destination``
is ``python:<name>`` and ``<name>`` was registered with :meth:`Model.bind`.
"""
import importlib.machinery
import importlib.util
import py_compile
import sys
import types
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO, Tuple, Union

from .exceptions import CompileError, ExchangeError, RunError
from .index_set import IndexSet
from .logging_config import get_logger
from .parameters import CALLBACK_SCHEME
from .sparse_array import SparseArray

logger = get_logger(__name__)


class RunStatus(Enum):
    """Status of a model after (or before) a run"""
    NOT_RUN = 'NOT_RUN'
    RUNNING = 'RUNNING'
    OK = 'OK'
    EXCHANGE_FAILED = 'EXCHANGE_FAILED'


def parse_exec_params(text: str) -> List[Tuple[str, str]]:
    """
    Split an execution parameter string into ``(key, raw_value)`` pairs.

    Pairs are separated by commas. A value may be enclosed in single or
    double quotes, in which case commas inside it are kept and the quotes
    are removed.

    >>> parse_exec_params("NUM=200,SOLFILE='python:sink'")
    [('NUM', '200'), ('SOLFILE', 'python:sink')]
    """
    pairs = []
    i = 0
    n = len(text)
    while i < n:
        eq = text.find('=', i)
        if eq < 0:
            raise RunError(f"malformed execution parameters near {text[i:]!r}: missing '='")
        key = text[i:eq].strip()
        if not key:
            raise RunError(f"malformed execution parameters: empty name at offset {i}")
        i = eq + 1
        while i < n and text[i] == ' ':
            i += 1
        if i < n and text[i] in ('"', "'"):
            quote = text[i]
            end = text.find(quote, i + 1)
            if end < 0:
                raise RunError(f"unterminated quote in value of {key}")
            value = text[i + 1:end]
            i = end + 1
            while i < n and text[i] == ' ':
                i += 1
            if i < n and text[i] != ',':
                raise RunError(f"unexpected text after quoted value of {key}")
        else:
            end = text.find(',', i)
            if end < 0:
                end = n
            value = text[i:end].strip()
            i = end
        pairs.append((key, value))
        i += 1  # skip ','
    return pairs


def _convert(key: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in ('true', '1'):
            return True
        if lowered in ('false', '0'):
            return False
        raise RunError(f"parameter {key}: expected a boolean, got {raw!r}")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            raise RunError(f"parameter {key}: expected an integer, got {raw!r}") from None
    if isinstance(default, float):
        try:
            return float(raw)
        except ValueError:
            raise RunError(f"parameter {key}: expected a real, got {raw!r}") from None
    return raw


class CompiledModel:
    """
    A model that compiled and declares its parameters.

    Attributes
    ----------
    name : str
        Model name (file stem)
    path : Path
        Source file, or bytecode file written by :meth:`save`
    parameters : dict
        Declared parameter defaults
    """

    def __init__(self, name: str, path: Path, parameters: Dict[str, Any], sourceless: bool = False):
        self.name = name
        self.path = Path(path)
        self.parameters = dict(parameters)
        self.sourceless = sourceless

    def save(self, path: Union[str, Path]) -> Path:
        """Write the model as a bytecode file that :meth:`Runtime.load_model` accepts."""
        if self.sourceless:
            raise CompileError(f"model {self.name} was loaded from bytecode and has no source to compile")
        path = Path(path)
        try:
            py_compile.compile(str(self.path), cfile=str(path), doraise=True)
        except py_compile.PyCompileError as e:
            raise CompileError(f"cannot compile {self.path}: {e.msg}") from e
        except OSError as e:
            raise CompileError(f"cannot write compiled model {path}: {e}") from e
        return path

    def __repr__(self):
        return f"<CompiledModel {self.name} parameters={sorted(self.parameters)}>"


def _load_module(name: str, path: Path, sourceless: bool = False) -> types.ModuleType:
    module_name = f"_modelhost_model_{name}"
    if sourceless:
        loader = importlib.machinery.SourcelessFileLoader(module_name, str(path))
    else:
        loader = importlib.machinery.SourceFileLoader(module_name, str(path))
    spec = importlib.util.spec_from_file_location(module_name, str(path), loader=loader)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _declared_parameters(name: str, module: types.ModuleType) -> Dict[str, Any]:
    parameters = getattr(module, 'PARAMETERS', None)
    if not isinstance(parameters, dict):
        raise CompileError(f"model {name} does not define a PARAMETERS dict")
    if not callable(getattr(module, 'main', None)):
        raise CompileError(f"model {name} does not define main(ctx)")
    for key, value in parameters.items():
        if not isinstance(value, (bool, int, float, str)):
            raise CompileError(f"model {name}: parameter {key} has unsupported type {type(value).__name__}")
    return parameters


class Runtime:
    """
    Entry point of the embedded runtime.

    Examples
    --------
    >>> runtime = Runtime()
    >>> compiled = runtime.compile("calctest.py")
    >>> model = runtime.load_model(compiled)
    """

    def compile(self, source: Union[str, Path]) -> CompiledModel:
        """
        Compile a model source file.

        Raises
        ------
        CompileError
            If the file does not exist, does not parse, or lacks
            ``PARAMETERS`` / ``main``
        """
        path = Path(source)
        if not path.is_file():
            raise CompileError(f"model source not found: {path}")
        name = path.stem
        try:
            module = _load_module(name, path)
        except SyntaxError as e:
            raise CompileError(f"{path}:{e.lineno}: {e.msg}") from e
        except Exception as e:
            raise CompileError(f"model {name} failed to initialize: {e}") from e
        parameters = _declared_parameters(name, module)
        logger.debug("Compiled model %s from %s", name, path)
        return CompiledModel(name, path, parameters)

    def load_model(self, compiled: Union[CompiledModel, str, Path]) -> 'Model':
        """Load a compiled model, either in memory or from a file written by :meth:`CompiledModel.save`."""
        if not isinstance(compiled, CompiledModel):
            path = Path(compiled)
            if not path.is_file():
                raise CompileError(f"compiled model not found: {path}")
            compiled = CompiledModel(path.stem, path, {}, sourceless=True)
        try:
            module = _load_module(compiled.name, compiled.path, sourceless=compiled.sourceless)
        except (ImportError, EOFError, ValueError) as e:
            raise CompileError(f"{compiled.path} is not a loadable model: {e}") from e
        except Exception as e:
            raise CompileError(f"model {compiled.name} failed to load: {e}") from e
        return Model(compiled.name, module, _declared_parameters(compiled.name, module))


class ModelContext:
    """
    Interface a running model uses to read parameters and emit output.

    Valid only for the duration of :meth:`Model.run`.
    """

    def __init__(self, model: 'Model', params: Dict[str, Any], stream: TextIO):
        self._model = model
        self._params = params
        self._stream = stream
        self._open = True
        self.index_set = IndexSet

    @property
    def params(self) -> Mapping[str, Any]:
        return types.MappingProxyType(self._params)

    def sparse_array(
        self,
        index_sets: Sequence[IndexSet],
        entries: Mapping[Tuple[int, ...], float],
        default: float = 0.0,
        name: Optional[str] = None,
    ) -> SparseArray:
        """Create a sparse array owned by the running model; :meth:`Model.reset` releases it."""
        self._check_open()
        array = SparseArray.from_entries(index_sets, entries, default=default, name=name)
        self._model._arrays.append(array)
        return array

    def write(self, text: str) -> None:
        """Print a line of model output."""
        self._check_open()
        print(text, file=self._stream)

    def initializations_to(self, destination: str, items: Mapping[str, Any]) -> None:
        """
        Send output items to ``destination``.

        Each item is handed to the bound handler in mapping order. Sparse
        arrays are released as soon as the handler returns.

        Raises
        ------
        ExchangeError
            If the handler returns False for an item
        RunError
            If the destination cannot be resolved
        """
        self._check_open()
        handler = self._model._resolve(destination)
        for label, value in items.items():
            logger.debug("Sending output item '%s' to %s", label, destination)
            try:
                accepted = handler.receive(label, value)
            finally:
                if isinstance(value, SparseArray):
                    value._invalidate()
            if not accepted:
                raise ExchangeError(f"handler at {destination} rejected output item '{label}'")

    def _check_open(self) -> None:
        if not self._open:
            raise RunError("model context used after run() returned")

    def _close(self) -> None:
        self._open = False


class Model:
    """
    A loaded model.

    Attributes
    ----------
    name : str
        Model name
    exec_params : str
        ``KEY=VALUE`` pairs applied on the next :meth:`run`
    status : RunStatus
        Outcome of the last run
    exit_code : int
        Value returned by the model's ``main`` (0 when it returns None)

    Examples
    --------
    >>> model = Runtime().load_model(compiled)
    >>> model.bind('resultsink', sink)
    >>> model.exec_params = "NUM=200,SOLFILE='python:resultsink'"
    >>> model.run()
    <RunStatus.OK: 'OK'>
    >>> model.reset()
    """

    def __init__(self, name: str, module: types.ModuleType, parameters: Dict[str, Any]):
        self.name = name
        self._module = module
        self._arrays: List[SparseArray] = []
        self._defaults = dict(parameters)
        self._handlers: Dict[str, Any] = {}
        self.exec_params = ''
        self.status = RunStatus.NOT_RUN
        self.exit_code = 0

    @property
    def parameters(self) -> Dict[str, Any]:
        """Declared parameter defaults"""
        return dict(self._defaults)

    def bind(self, name: str, handler) -> None:
        """Register a handler object exposing ``receive(label, value) -> bool``."""
        if not callable(getattr(handler, 'receive', None)):
            raise TypeError("handler must provide a receive(label, value) method")
        self._handlers[name] = handler

    def _resolve(self, destination: str):
        scheme, sep, name = destination.partition(':')
        if not sep or scheme != CALLBACK_SCHEME:
            raise RunError(f"unsupported output destination {destination!r}")
        try:
            return self._handlers[name]
        except KeyError:
            raise RunError(f"no handler bound as {name!r}") from None

    def _effective_params(self) -> Dict[str, Any]:
        params = dict(self._defaults)
        for key, raw in parse_exec_params(self.exec_params):
            if key not in self._defaults:
                raise RunError(f"model {self.name} has no parameter {key}")
            params[key] = _convert(key, raw, self._defaults[key])
        return params

    def run(self, stream: Optional[TextIO] = None) -> RunStatus:
        """
        Run the model; blocks until ``main`` returns.

        Handlers bound with :meth:`bind` are called synchronously from
        within this call.

        Returns
        -------
        RunStatus
            ``OK``, or ``EXCHANGE_FAILED`` when a handler rejected an item

        Raises
        ------
        RunError
            On bad parameters, re-entrant runs, or an exception in the model
        """
        if self.status is RunStatus.RUNNING:
            raise RunError(f"model {self.name} is already running")
        params = self._effective_params()
        ctx = ModelContext(self, params, stream if stream is not None else sys.stdout)

        self.status = RunStatus.RUNNING
        self.exit_code = 0
        logger.info("Running model %s with %s", self.name, self.exec_params or '<defaults>')
        try:
            code = self._module.main(ctx)
        except ExchangeError as e:
            logger.error("Model %s: %s", self.name, e)
            self.status = RunStatus.EXCHANGE_FAILED
            return self.status
        except RunError:
            self.status = RunStatus.NOT_RUN
            raise
        except Exception as e:
            self.status = RunStatus.NOT_RUN
            raise RunError(f"model {self.name} aborted: {e}") from e
        finally:
            ctx._close()

        self.exit_code = int(code) if code is not None else 0
        self.status = RunStatus.OK
        logger.info("Model %s finished (exit code %d)", self.name, self.exit_code)
        return self.status

    def reset(self) -> None:
        """Release handlers, model-owned arrays and run state so the model can be reconfigured."""
        if self.status is RunStatus.RUNNING:
            raise RunError(f"cannot reset model {self.name} while it is running")
        self._handlers.clear()
        for array in self._arrays:
            array._invalidate()
        self._arrays.clear()
        self.status = RunStatus.NOT_RUN
        self.exit_code = 0
        logger.debug("Model %s reset", self.name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.reset()
        return False

    def __repr__(self):
        return f"<Model {self.name} status={self.status.value}>"
