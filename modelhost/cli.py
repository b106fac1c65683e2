"""
Command-line host: run a model and print the squares it reports
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .coordinator import RunCoordinator
from .exceptions import SolverInvocationFailure
from .logging_config import get_logger, setup_logging
from .parameters import ExecParameters
from .results import ResultCollection, format_value
from .sink import ResultSink

logger = get_logger(__name__)

DEFAULT_MODEL = Path(__file__).parent / 'models' / 'calctest.py'


def format_report(results: ResultCollection) -> str:
    """``Found <N> numbers`` followed by one ``<label>^2 = <value>`` line per record."""
    lines = [f"Found {len(results)} numbers"]
    for record in results:
        lines.append(f"{record.ind}^2 = {format_value(record.val)}")
    return "\n".join(lines)


def _parse_param(text: str):
    key, sep, value = text.partition('=')
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    for convert in (int, float):
        try:
            return key, convert(value)
        except ValueError:
            pass
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='modelhost',
        description='Run a model and collect its sparse results through a callback.',
    )
    parser.add_argument('--model', type=Path, default=DEFAULT_MODEL,
                        help='Model source file (default: bundled calctest model)')
    parser.add_argument('--num', type=int, default=200,
                        help='Value of the NUM model parameter (default: 200)')
    parser.add_argument('--param', type=_parse_param, action='append', default=[],
                        metavar='KEY=VALUE', help='Additional model parameter (repeatable)')
    parser.add_argument('--label', default='Res',
                        help='Output item to report (default: Res)')
    parser.add_argument('--verbose', action='store_true', help='Enable DEBUG logging.')
    parser.add_argument('--log-file', default=None, help='Also write log records to this file.')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING,
                  log_file=args.log_file)

    params = ExecParameters(NUM=args.num)
    for key, value in args.param:
        params[key] = value

    coordinator = RunCoordinator()
    sink = ResultSink()
    try:
        outcome = coordinator.execute(args.model, sink, params)
    except SolverInvocationFailure as e:
        logger.error("Run failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        coordinator.reset()
        return 1

    if not outcome.ok:
        print(f"Error: data exchange with model {outcome.model.name} failed", file=sys.stderr)
        coordinator.reset()
        return 2

    results = sink.get(args.label)
    if results is None:
        results = ResultCollection.empty(args.label)
    print(format_report(results))

    coordinator.reset()
    return 0
