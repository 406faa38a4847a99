"""
Absorbing Wright-Fisher chain: extinction/fixation probabilities and sojourn times.

MATHEMATICAL APPROACH:
=====================
Restrict the one-generation transition matrix to the 2N-1 transient states
(1..2N-1 copies) and call it Q. With R[i] = (1 - q_i)^(2N), the probability of
jumping from state i straight to 0 copies, first-step analysis gives

    (I - Q) B1 = R            B1[i] = P(extinction | start at i+1 copies)

and the fundamental matrix (I - Q)^{-1} holds expected visit counts, so its
first row comes from the transpose system

    (I - Q)^T N = e_0         N[j]  = E[generations at j+1 copies | start at 1 copy]

Both systems share one LU factorization of (I - Q).
"""

from __future__ import annotations

import logging

import numpy as np

from wfes.logging_utils import log_elapsed
from wfes.matrix import DEFAULT_ZERO_THRESHOLD, build_generator_matrix, check_csr_structure
from wfes.parameters import ModelParameters
from wfes.solver import DirectSolver, SolverOptions
from wfes.statistics import Results, reduce_statistics
from wfes.transition import extinction_step_probability

logger = logging.getLogger(__name__)


class WrightFisherAbsorbingChain:
    """
    Wright-Fisher chain with absorbing boundaries at 0 and 2N copies.

    Parameters:
    -----------
    params : ModelParameters
    zero_threshold : float, optional (default=1e-30)
        Transition probabilities at or below this value are not stored
    solver_options : SolverOptions, optional
    block_size : int, optional
        Rows per matrix assembly block (default: 10% of the matrix)
    max_workers : int, optional (default=1)
        Threads for matrix assembly
    """

    def __init__(self, params: ModelParameters, zero_threshold: float = DEFAULT_ZERO_THRESHOLD,
                 solver_options: SolverOptions | None = None, block_size: int | None = None,
                 max_workers: int = 1):
        self.params = params
        self.zero_threshold = zero_threshold
        self.solver_options = solver_options if solver_options is not None else SolverOptions()
        self.block_size = block_size
        self.max_workers = max_workers

        self.A = None           # (I - Q), CSR
        self.results = None     # Results of the last solve

    @property
    def matrix_size(self) -> int:
        return self.params.matrix_size

    def construct_generator_matrix(self):
        """Build and check the CSR matrix (I - Q)."""
        with log_elapsed(logger, "Building matrix"):
            A = build_generator_matrix(
                self.params,
                zero_threshold=self.zero_threshold,
                block_size=self.block_size,
                max_workers=self.max_workers,
            )
        check_csr_structure(A)
        self.A = A
        return A

    def extinction_rhs(self) -> np.ndarray:
        """R[i] = (1 - q_{i+1})^(2N), one-step absorption into 0 copies."""
        return np.asarray(
            extinction_step_probability(np.arange(1, self.matrix_size + 1), self.params),
            dtype=float,
        )

    def sojourn_rhs(self) -> np.ndarray:
        """Unit vector selecting the single-copy starting state."""
        e0 = np.zeros(self.matrix_size)
        e0[0] = 1.0
        return e0

    def solve(self) -> Results:
        """Factorize (I - Q) once, solve both systems and reduce to Results."""
        if self.A is None:
            self.construct_generator_matrix()

        p = self.params
        logger.info(
            "Solving N=%d, s=%g, u=%g, v=%g, h=%g (%d states)",
            p.population_size, p.selection, p.forward_mutation_rate,
            p.backward_mutation_rate, p.dominance_coefficient, self.matrix_size,
        )
        extinction_rhs = self.extinction_rhs()
        sojourn_rhs = self.sojourn_rhs()

        with DirectSolver(self.A, self.solver_options) as solver:
            with log_elapsed(logger, "Symbolic factorization"):
                solver.analyze()
            with log_elapsed(logger, "Numeric factorization"):
                solver.factorize()
            with log_elapsed(logger, "Solution"):
                extinction = solver.solve(extinction_rhs)
                sojourn = solver.solve(sojourn_rhs, transpose=True)

        self.results = reduce_statistics(extinction, sojourn)
        logger.info(
            "P(extinction)=%g, P(fixation)=%g",
            self.results.probability_extinction, self.results.probability_fixation,
        )
        return self.results


def wfes(params: ModelParameters, zero_threshold: float = DEFAULT_ZERO_THRESHOLD,
         solver_options: SolverOptions | None = None, block_size: int | None = None,
         max_workers: int = 1) -> Results:
    """Compute absorption probabilities, conditional times and sojourn times for one parameter set."""
    chain = WrightFisherAbsorbingChain(
        params,
        zero_threshold=zero_threshold,
        solver_options=solver_options,
        block_size=block_size,
        max_workers=max_workers,
    )
    return chain.solve()
