"""
Sparse generator matrix (I - Q) of the Wright-Fisher chain.

Q[i, j] is the probability of moving from transient state i (i+1 copies) to
transient state j (j+1 copies) in one generation:

    Q[i, j] = Binomial(2N, q_{i+1}).pmf(j+1)

The matrix is stored row-wise (CSR). Entries whose probability does not exceed
the zero threshold are left out of the sparsity pattern; the diagonal is always
stored. Rows are assembled in blocks, optionally on a thread pool.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from scipy.sparse import csr_matrix
from scipy.stats import binom

from wfes.errors import MatrixAssemblyError, ParameterError
from wfes.parameters import ModelParameters
from wfes.transition import sampling_coefficient

logger = logging.getLogger(__name__)

DEFAULT_ZERO_THRESHOLD = 1e-30


def default_block_size(matrix_size: int) -> int:
    """Rows per assembly block: 10% of the matrix once it has 100 rows, else all of it."""
    if matrix_size >= 100:
        return int(matrix_size * 0.1)
    return matrix_size


def _candidate_window(q: np.ndarray, n: int, zero_threshold: float):
    """
    Column range (in copies) holding every entry above the threshold.

    The binomial pmf rises up to its mode and falls after it, so the counts
    with mass above t form one interval around the mode. Both ends are found
    by bisection on the pmf itself, which stays exact for thresholds far
    below what the quantile functions can bracket.
    """
    lo = np.ones(q.shape, dtype=np.int64)
    hi = np.full(q.shape, n - 1, dtype=np.int64)
    if zero_threshold <= 0.0:
        return lo, hi
    mode = np.clip(np.floor((n + 1) * q).astype(np.int64), 1, n - 1)

    # lower end: smallest count in [1, mode] above t; column 0 is the sentinel
    outside, inside = np.zeros_like(mode), mode.copy()
    while np.any(inside - outside > 1):
        mid = (outside + inside) // 2
        above = binom.pmf(mid, n, q) > zero_threshold
        inside = np.where(above, mid, inside)
        outside = np.where(above, outside, mid)
    lo = inside

    # upper end: largest count in [mode, n-1] above t; column n is the sentinel
    inside, outside = mode.copy(), np.full_like(mode, n)
    while np.any(outside - inside > 1):
        mid = (outside + inside) // 2
        above = binom.pmf(mid, n, q) > zero_threshold
        inside = np.where(above, mid, inside)
        outside = np.where(above, outside, mid)
    hi = inside
    return lo, hi


def _assemble_block(start: int, stop: int, params: ModelParameters, zero_threshold: float):
    """
    Assemble rows [start, stop) of (I - Q).

    Returns (values, column_indices, row_counts, max_discarded_mass).
    """
    n = params.copies
    nrows = stop - start
    diag = np.arange(start, stop, dtype=np.int64) + 1  # diagonal column, in copies
    q = np.asarray(sampling_coefficient(diag, params), dtype=float)

    lo, hi = _candidate_window(q, n, zero_threshold)
    lo = np.minimum(lo, diag)
    hi = np.maximum(hi, diag)

    # Flatten all candidate (row, column) pairs of the block
    lengths = hi - lo + 1
    offsets = np.cumsum(lengths) - lengths
    row_local = np.repeat(np.arange(nrows), lengths)
    cols = np.arange(int(lengths.sum()), dtype=np.int64) - np.repeat(offsets, lengths) + np.repeat(lo, lengths)

    pmf = binom.pmf(cols, n, q[row_local])
    on_diag = cols == diag[row_local]
    keep = (pmf > zero_threshold) | on_diag

    values = np.where(on_diag, 1.0 - pmf, -pmf)[keep]
    indices = cols[keep] - 1
    counts = np.bincount(row_local[keep], minlength=nrows)

    # Mass lost to the threshold, for diagnostics only
    kept_mass = np.bincount(row_local[keep], weights=pmf[keep], minlength=nrows)
    boundary_mass = binom.pmf(0, n, q) + binom.pmf(n, n, q)
    discarded = float(np.max(1.0 - kept_mass - boundary_mass, initial=0.0))

    return values, indices, counts, discarded


def build_generator_matrix(
    params: ModelParameters,
    zero_threshold: float = DEFAULT_ZERO_THRESHOLD,
    block_size: int | None = None,
    max_workers: int = 1,
) -> csr_matrix:
    """
    Construct the (2N-1) x (2N-1) CSR matrix (I - Q) over the transient states.

    Parameters:
    -----------
    params : ModelParameters
    zero_threshold : float, optional (default=1e-30)
        One-step probabilities at or below this value are not stored.
        The diagonal is kept regardless.
    block_size : int, optional
        Rows per assembly block (default: ``default_block_size``)
    max_workers : int, optional (default=1)
        Threads used to assemble blocks. Results are joined in row order, so
        neither this nor ``block_size`` changes the matrix.

    Returns:
    --------
    scipy.sparse.csr_matrix
    """
    if not zero_threshold >= 0.0:
        raise ParameterError(f"Zero threshold must be non-negative, got {zero_threshold}")

    size = params.matrix_size
    if block_size is None:
        block_size = default_block_size(size)
    block_size = max(1, min(int(block_size), size))

    bounds = [(start, min(start + block_size, size)) for start in range(0, size, block_size)]
    logger.debug(
        "Assembling %dx%d generator matrix in %d block(s), threshold=%g",
        size, size, len(bounds), zero_threshold,
    )

    def worker(bound):
        return _assemble_block(bound[0], bound[1], params, zero_threshold)

    if max_workers is not None and max_workers > 1 and len(bounds) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            blocks = list(ex.map(worker, bounds))
    else:
        blocks = [worker(bound) for bound in bounds]

    data = np.concatenate([b[0] for b in blocks])
    indices = np.concatenate([b[1] for b in blocks])
    counts = np.concatenate([b[2] for b in blocks])
    indptr = np.zeros(size + 1, dtype=np.int64)
    np.cumsum(counts, out=indptr[1:])

    matrix = csr_matrix((data, indices, indptr), shape=(size, size))

    discarded = max(b[3] for b in blocks)
    logger.debug(
        "Generator matrix: nnz=%d (%.3g per row), max mass discarded per row %.3g",
        matrix.nnz, matrix.nnz / size, discarded,
    )
    return matrix


def check_csr_structure(matrix: csr_matrix) -> None:
    """
    Verify the CSR layout the solver relies on.

    Row pointers must be strictly increasing (no empty row), column indices
    sorted ascending and unique within each row, and every row must hold its
    diagonal entry. Raises MatrixAssemblyError naming the first offending row.
    """
    nrows, ncols = matrix.shape
    if nrows != ncols:
        raise MatrixAssemblyError(
            f"Generator matrix must be square, got shape {matrix.shape}",
            context={"shape": matrix.shape},
        )
    indptr = np.asarray(matrix.indptr)
    indices = np.asarray(matrix.indices)

    if indptr[0] != 0 or indptr[-1] != len(indices):
        raise MatrixAssemblyError("Row pointers do not span the stored entries")

    row_counts = np.diff(indptr)
    empty = np.flatnonzero(row_counts <= 0)
    if empty.size:
        raise MatrixAssemblyError(
            f"Row {int(empty[0])} of the generator matrix is empty",
            context={"row": int(empty[0])},
        )

    if indices.size and (indices.min() < 0 or indices.max() >= ncols):
        raise MatrixAssemblyError("Column index out of range")

    steps = np.diff(indices)
    within_row = np.ones(steps.shape, dtype=bool)
    within_row[indptr[1:-1] - 1] = False  # pairs straddling a row boundary
    unsorted = np.flatnonzero(within_row & (steps <= 0))
    if unsorted.size:
        row = int(np.searchsorted(indptr, unsorted[0], side="right") - 1)
        raise MatrixAssemblyError(
            f"Column indices of row {row} are not strictly ascending",
            context={"row": row},
        )

    rows = np.repeat(np.arange(nrows), row_counts)
    has_diag = np.zeros(nrows, dtype=bool)
    has_diag[rows[indices == rows]] = True
    missing = np.flatnonzero(~has_diag)
    if missing.size:
        raise MatrixAssemblyError(
            f"Row {int(missing[0])} has no diagonal entry",
            context={"row": int(missing[0])},
        )
