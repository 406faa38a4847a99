"""Result line and vector file formats."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from wfes.parameters import ModelParameters
from wfes.statistics import Results


def _g(value: float) -> str:
    # C printf %g, which is also what the vector files use
    return "%g" % value


def format_result_line(params: ModelParameters, results: Results) -> str:
    """
    One CSV line: N, s, u, v, h, P(ext), P(fix), T(ext), T(fix), count before extinction.
    """
    fields = [str(int(params.population_size))]
    fields += [_g(x) for x in (
        params.selection,
        params.forward_mutation_rate,
        params.backward_mutation_rate,
        params.dominance_coefficient,
        results.probability_extinction,
        results.probability_fixation,
        results.time_extinction,
        results.time_fixation,
        results.count_before_extinction,
    )]
    return ",".join(fields)


def write_vector(path: str | Path, values) -> Path:
    """Write ``values`` as a single comma-separated line."""
    path = Path(path)
    line = ",".join(_g(float(x)) for x in np.asarray(values, dtype=float))
    path.write_text(line + "\n")
    return path


def read_vector(path: str | Path) -> np.ndarray:
    """Read a vector written by ``write_vector``."""
    text = Path(path).read_text().strip()
    if not text:
        return np.zeros(0, dtype=float)
    return np.array([float(x) for x in text.split(",")], dtype=float)


def write_state_table(path: str | Path, results: Results) -> Path:
    """Write the per-state table (copies, extinction, fixation, sojourn) as CSV."""
    path = Path(path)
    results.to_frame().to_csv(path, index=False)
    return path
