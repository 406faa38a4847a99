"""Summary statistics derived from the two solved vectors."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd


@dataclass
class Results:
    """
    Absorption statistics of one run.

    B1[i] / B2[i] are the extinction / fixation probabilities starting from
    i+1 copies; N_sojourn[i] is the expected number of generations spent at
    i+1 copies starting from a single copy.
    """

    B1: np.ndarray
    B2: np.ndarray
    N_sojourn: np.ndarray
    probability_extinction: float
    probability_fixation: float
    time_extinction: float
    time_fixation: float
    count_before_extinction: float

    def summary(self) -> dict:
        return {
            'probability_extinction': self.probability_extinction,
            'probability_fixation': self.probability_fixation,
            'time_extinction': self.time_extinction,
            'time_fixation': self.time_fixation,
            'count_before_extinction': self.count_before_extinction,
        }

    def to_frame(self) -> pd.DataFrame:
        """Per-state table with columns: copies, extinction, fixation, sojourn."""
        return pd.DataFrame({
            'copies': np.arange(1, len(self.B1) + 1),
            'extinction': self.B1,
            'fixation': self.B2,
            'sojourn': self.N_sojourn,
        })


# Probabilities from one copy at or below this are indistinguishable from 0:
# B2 = 1 - B1 carries an absolute error of a few ulps of 1.
NEGLIGIBLE_PROBABILITY = 4 * np.finfo(float).eps


def _clamp(vector) -> np.ndarray:
    # Solver round-off can leave tiny negative probabilities/times
    v = np.array(vector, dtype=float, copy=True)
    v[v < 0] = 0.0
    return v


def reduce_statistics(extinction, sojourn) -> Results:
    """
    Turn the raw forward-solve and transpose-solve vectors into Results.

    Parameters:
    -----------
    extinction : array_like
        Solution of (I - Q) B1 = R, extinction probability per starting state
    sojourn : array_like
        Solution of (I - Q)^T N = e_0, expected visits per state

    Returns:
    --------
    Results
        Times conditional on an outcome whose probability from one copy is
        at most NEGLIGIBLE_PROBABILITY are NaN, and that probability is
        reported as 0. B2 is clipped to [0, 1].
    """
    B1 = _clamp(extinction)
    N_sojourn = _clamp(sojourn)
    if B1.shape != N_sojourn.shape:
        raise ValueError(f"Vector shapes differ: {B1.shape} vs {N_sojourn.shape}")
    B2 = np.clip(1.0 - B1, 0.0, 1.0)

    copies = np.arange(1, len(B1) + 1)
    weighted_extinction = float(np.sum(B1 * N_sojourn))
    weighted_fixation = float(np.sum(B2 * N_sojourn))
    weighted_count = float(np.sum(N_sojourn * B1 * copies))

    if B1[0] <= NEGLIGIBLE_PROBABILITY:
        probability_extinction = 0.0
        time_extinction = float('nan')
        count_before_extinction = float('nan')
    else:
        probability_extinction = float(B1[0])
        time_extinction = weighted_extinction / B1[0]
        count_before_extinction = weighted_count / B1[0]

    if B2[0] <= NEGLIGIBLE_PROBABILITY:
        probability_fixation = 0.0
        time_fixation = float('nan')
    else:
        probability_fixation = float(B2[0])
        time_fixation = weighted_fixation / B2[0]

    return Results(
        B1=B1,
        B2=B2,
        N_sojourn=N_sojourn,
        probability_extinction=probability_extinction,
        probability_fixation=probability_fixation,
        time_extinction=float(time_extinction),
        time_fixation=float(time_fixation),
        count_before_extinction=float(count_before_extinction),
    )
