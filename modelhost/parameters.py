"""
Execution parameters passed to a model run
"""
from typing import Any, Dict

CALLBACK_SCHEME = 'python'


def callback_destination(handler_name: str) -> str:
    """Destination string routing an output block to the handler bound as ``handler_name``"""
    return f"{CALLBACK_SCHEME}:{handler_name}"


class ExecParameters:
    """
    Run-time parameters for a model.

    Values are rendered into the flat ``KEY=VALUE,KEY=VALUE`` string the
    runtime reads; the runtime, not this class, interprets them.

    Examples
    --------
    >>> params = ExecParameters(NUM=200)
    >>> params['SOLFILE'] = callback_destination('resultsink')
    >>> params.to_exec_string()
    "NUM=200,SOLFILE='python:resultsink'"
    """

    def __init__(self, **values):
        self._values: Dict[str, Any] = {}
        for key, value in values.items():
            self[key] = value

    def __getitem__(self, key: str):
        return self._values[key]

    def __setitem__(self, key: str, value):
        if not key or not key.replace('_', '').isalnum():
            raise ValueError(f"invalid parameter name: {key!r}")
        if not isinstance(value, (bool, int, float, str)):
            raise TypeError(f"parameter {key} must be bool, int, float or str, got {type(value).__name__}")
        self._values[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self):
        inner = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"ExecParameters({inner})"

    def with_callback(self, handler_name: str, key: str = 'SOLFILE') -> 'ExecParameters':
        """Copy of these parameters with ``key`` pointing at a bound handler"""
        params = ExecParameters.from_dict(self._values)
        params[key] = callback_destination(handler_name)
        return params

    def to_exec_string(self) -> str:
        """Render as ``KEY=VALUE`` pairs joined by commas; strings are quoted."""
        return ",".join(f"{key}={_render(value)}" for key, value in self._values.items())

    @classmethod
    def from_dict(cls, d):
        """Create ExecParameters from dictionary"""
        return cls(**d)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return dict(self._values)


def _render(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str):
        quote = "'" if "'" not in value else '"'
        if quote in value:
            raise ValueError(f"string parameter cannot contain both quote characters: {value!r}")
        return f"{quote}{value}{quote}"
    return repr(value)
