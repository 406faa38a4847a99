"""
Command-line entry point.

Usage
-----
wfes -N 1000 -s 0.001 -u 1e-9 -v 1e-9 -d 0.5 -g sojourn.csv -e extinction.csv
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from wfes import __version__
from wfes.errors import ParameterError, SolverError, WfesError
from wfes.io import format_result_line, write_state_table, write_vector
from wfes.logging_utils import configure_logging, log_exception
from wfes.matrix import DEFAULT_ZERO_THRESHOLD
from wfes.model import wfes
from wfes.parameters import ModelParameters, check_sanity
from wfes.solver import COLUMN_ORDERINGS, SolverOptions

logger = logging.getLogger("wfes.cli")

EXIT_OK = 0
EXIT_PARAM_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wfes",
        description="WFES: Wright-Fisher model solver. Prints one CSV line: "
                    "N, s, u, v, h, P(extinction), P(fixation), T(extinction), "
                    "T(fixation), count before extinction.",
    )
    p.add_argument('-N', '-n', '--population_size', '--population-size', dest='population_size',
                   type=int, required=True, help='Population size')
    p.add_argument('-s', '--selection_coefficient', '--selection-coefficient', dest='selection',
                   type=float, required=True, help='Selection coefficient')
    p.add_argument('-u', '--forward_mutation_rate', '--forward-mutation-rate',
                   dest='forward_mutation_rate', type=float, required=True,
                   help='Mutation rate from A to a')
    p.add_argument('-v', '--backward_mutation_rate', '--backward-mutation-rate',
                   dest='backward_mutation_rate', type=float, required=True,
                   help='Mutation rate from a to A')
    p.add_argument('-d', '--dominance_coefficient', '--dominance-coefficient',
                   dest='dominance_coefficient', type=float, required=True,
                   help='Proportion of selection Aa receives')
    p.add_argument('-z', '--zero_threshold', '--zero-threshold', dest='zero_threshold',
                   type=float, default=DEFAULT_ZERO_THRESHOLD,
                   help='Any transition probability at or below this is treated as zero (default 1e-30)')
    p.add_argument('-g', '--generations_file', '--sojourn_time_file', dest='generations_file',
                   default=None, help='Write the sojourn time vector to this file')
    p.add_argument('-e', '--extinction_file', dest='extinction_file', default=None,
                   help='Write the extinction probability vector to this file')
    p.add_argument('-f', '--fixation_file', dest='fixation_file', default=None,
                   help='Write the fixation probability vector to this file')
    p.add_argument('--table', dest='table_file', default=None,
                   help='Write a per-state CSV table (copies, extinction, fixation, sojourn)')
    p.add_argument('--force', action='store_true',
                   help='Skip the population size and mutation rate sanity checks')
    p.add_argument('--ordering', choices=COLUMN_ORDERINGS, default='COLAMD',
                   help='Fill-reducing column ordering for the factorization')
    p.add_argument('--refinement-steps', type=int, default=2,
                   help='Iterative refinement steps per solve')
    p.add_argument('--workers', type=int, default=1, help='Threads for matrix assembly')
    p.add_argument('-V', '--verbose', action='count', default=0,
                   help='More log output (-V info, -VV debug with timings)')
    p.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return p


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _log_level(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(_log_level(args.verbose))

    try:
        params = ModelParameters(
            population_size=args.population_size,
            selection=args.selection,
            forward_mutation_rate=args.forward_mutation_rate,
            backward_mutation_rate=args.backward_mutation_rate,
            dominance_coefficient=args.dominance_coefficient,
        )
        check_sanity(params, force=args.force)
        solver_options = SolverOptions(
            column_ordering=args.ordering,
            refinement_steps=args.refinement_steps,
        )
    except ParameterError as exc:
        log_exception(logger, exc)
        return EXIT_PARAM_ERROR

    try:
        results = wfes(
            params,
            zero_threshold=args.zero_threshold,
            solver_options=solver_options,
            max_workers=args.workers,
        )
    except SolverError as exc:
        log_exception(logger, exc)
        return exc.phase
    except ParameterError as exc:
        log_exception(logger, exc)
        return EXIT_PARAM_ERROR
    except WfesError as exc:
        log_exception(logger, exc, show_traceback=True)
        return 1

    print(format_result_line(params, results))

    if args.generations_file:
        write_vector(args.generations_file, results.N_sojourn)
    if args.extinction_file:
        write_vector(args.extinction_file, results.B1)
    if args.fixation_file:
        write_vector(args.fixation_file, results.B2)
    if args.table_file:
        write_state_table(args.table_file, results)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
