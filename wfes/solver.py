"""
Direct sparse solver for the generator matrix, run as a four-phase resource.

    ANALYZE   (11)  structural checks, conversion to the column layout SuperLU factors
    FACTORIZE (22)  numeric LU factorization, once per run
    SOLVE     (33)  triangular solves against the single factorization,
                    forward (A x = b) or transpose (A^T x = b)
    RELEASE   (-1)  drop the factorization

DirectSolver is a context manager: release happens exactly once on every exit
path, including a failed phase. Any failure in the first three phases raises
SolverError with the phase code and a nonzero status; nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
from scipy.sparse import csc_matrix, issparse
from scipy.sparse.linalg import splu

from wfes.errors import ParameterError, SolverError

logger = logging.getLogger(__name__)

COLUMN_ORDERINGS = ("COLAMD", "MMD_AT_PLUS_A", "MMD_ATA", "NATURAL")


class SolverPhase(IntEnum):
    ANALYZE = 11
    FACTORIZE = 22
    SOLVE = 33
    RELEASE = -1


class SolverStatus(IntEnum):
    OK = 0
    INVALID_INPUT = 1
    SINGULAR = 2
    NONFINITE_SOLUTION = 3
    PHASE_ORDER = 4
    BACKEND_FAILURE = 5


@dataclass(frozen=True)
class SolverOptions:
    """
    Switches of the direct solver.

    column_ordering : str
        Fill-reducing column permutation used by SuperLU (default COLAMD)
    diag_pivot_thresh : float
        Threshold partial pivoting; 1.0 is classical partial pivoting,
        0.0 always takes the diagonal
    equilibrate : bool
        Row/column scaling before factorization
    refinement_steps : int
        Iterative refinement steps applied after every solve, reusing the
        factorization in the same mode as the solve
    symmetric_mode : bool
        Favour diagonal pivots. Off for (I - Q), which is not symmetric.
    """

    column_ordering: str = "COLAMD"
    diag_pivot_thresh: float = 1.0
    equilibrate: bool = True
    refinement_steps: int = 2
    symmetric_mode: bool = False

    def __post_init__(self):
        if self.column_ordering not in COLUMN_ORDERINGS:
            raise ParameterError(
                f"Unknown column ordering '{self.column_ordering}'. "
                f"Use one of {', '.join(COLUMN_ORDERINGS)}"
            )
        if not 0.0 <= self.diag_pivot_thresh <= 1.0:
            raise ParameterError(
                f"diag_pivot_thresh must be in [0,1], got {self.diag_pivot_thresh}"
            )
        if self.refinement_steps < 0:
            raise ParameterError(
                f"refinement_steps must be non-negative, got {self.refinement_steps}"
            )

    def splu_kwargs(self) -> dict:
        return {
            "permc_spec": self.column_ordering,
            "diag_pivot_thresh": self.diag_pivot_thresh,
            "options": {
                "Equil": self.equilibrate,
                "SymmetricMode": self.symmetric_mode,
            },
        }


class DirectSolver:
    """
    Owned handle on one LU factorization of a square sparse matrix.

    Usage:
    ------
    >>> with DirectSolver(A) as solver:
    ...     solver.analyze()
    ...     solver.factorize()
    ...     x = solver.solve(b)
    ...     y = solver.solve(e0, transpose=True)
    """

    def __init__(self, matrix, options: SolverOptions | None = None):
        self.matrix = matrix
        self.options = options if options is not None else SolverOptions()
        self._csc: csc_matrix | None = None
        self._lu = None
        self._released = False
        self.release_count = 0

    def __enter__(self) -> "DirectSolver":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    @property
    def dimension(self) -> int:
        return int(self.matrix.shape[0])

    @property
    def released(self) -> bool:
        return self._released

    def _fail(self, phase: SolverPhase, status: SolverStatus, message: str, **context) -> SolverError:
        return SolverError(
            message,
            phase=int(phase),
            status=int(status),
            user_message=f"ERROR during {phase.name.lower()}: {int(status)} ({message})",
            context=context,
        )

    def _require_open(self, phase: SolverPhase) -> None:
        if self._released:
            raise self._fail(phase, SolverStatus.PHASE_ORDER, "solver already released")

    def analyze(self) -> None:
        """Symbolic phase: validate the matrix and convert it to CSC."""
        phase = SolverPhase.ANALYZE
        self._require_open(phase)
        if self._csc is not None:
            raise self._fail(phase, SolverStatus.PHASE_ORDER, "matrix already analyzed")
        if not issparse(self.matrix):
            raise self._fail(phase, SolverStatus.INVALID_INPUT, "matrix is not sparse")
        nrows, ncols = self.matrix.shape
        if nrows != ncols or nrows == 0:
            raise self._fail(
                phase, SolverStatus.INVALID_INPUT,
                f"matrix must be square and non-empty, got shape {self.matrix.shape}",
            )
        csc = csc_matrix(self.matrix, dtype=float)
        if not np.all(np.isfinite(csc.data)):
            raise self._fail(phase, SolverStatus.INVALID_INPUT, "matrix has non-finite entries")
        csc.sort_indices()
        self._csc = csc
        logger.debug("Analyze: n=%d, nnz=%d, ordering=%s", nrows, csc.nnz, self.options.column_ordering)

    def factorize(self) -> None:
        """Numeric LU factorization of the analyzed matrix."""
        phase = SolverPhase.FACTORIZE
        self._require_open(phase)
        if self._csc is None:
            raise self._fail(phase, SolverStatus.PHASE_ORDER, "matrix not analyzed")
        if self._lu is not None:
            raise self._fail(phase, SolverStatus.PHASE_ORDER, "matrix already factorized")
        try:
            self._lu = splu(self._csc, **self.options.splu_kwargs())
        except RuntimeError as exc:
            # SuperLU reports a zero pivot as "Factor is exactly singular"
            status = SolverStatus.SINGULAR if "singular" in str(exc).lower() else SolverStatus.BACKEND_FAILURE
            raise self._fail(phase, status, str(exc)) from exc
        except (ValueError, MemoryError) as exc:
            raise self._fail(phase, SolverStatus.BACKEND_FAILURE, str(exc)) from exc
        logger.debug("Factorize: nnz(L+U)=%d", self._lu.L.nnz + self._lu.U.nnz)

    def solve(self, rhs, transpose: bool = False) -> np.ndarray:
        """
        Solve A x = rhs, or A^T x = rhs when ``transpose`` is set.

        ``rhs`` is left untouched; the solution is a new array.
        """
        phase = SolverPhase.SOLVE
        self._require_open(phase)
        if self._lu is None:
            raise self._fail(phase, SolverStatus.PHASE_ORDER, "matrix not factorized")
        b = np.array(rhs, dtype=float, copy=True)
        if b.shape != (self.dimension,):
            raise self._fail(
                phase, SolverStatus.INVALID_INPUT,
                f"right-hand side has shape {b.shape}, expected ({self.dimension},)",
            )
        trans = "T" if transpose else "N"
        operator = self._csc.T if transpose else self._csc
        try:
            x = self._lu.solve(b, trans=trans)
            for _ in range(self.options.refinement_steps):
                residual = b - operator @ x
                if not np.any(residual) or not np.all(np.isfinite(residual)):
                    break
                x = x + self._lu.solve(residual, trans=trans)
        except (RuntimeError, ValueError) as exc:
            raise self._fail(phase, SolverStatus.BACKEND_FAILURE, str(exc), transpose=transpose) from exc
        if not np.all(np.isfinite(x)):
            raise self._fail(
                phase, SolverStatus.NONFINITE_SOLUTION, "solution has non-finite entries",
                transpose=transpose,
            )
        logger.debug("Solve (%s): done", "transpose" if transpose else "forward")
        return x

    def release(self) -> None:
        """Drop the factorization. Later calls are no-ops."""
        if self._released:
            return
        self._lu = None
        self._csc = None
        self._released = True
        self.release_count += 1
        logger.debug("Release: solver memory freed")
