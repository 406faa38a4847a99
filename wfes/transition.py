"""
One-generation dynamics of the diploid Wright-Fisher chain.

With i copies of "A" among 2N, the next generation is Binomial(2N, q_i) where
q_i is the expected frequency of "A" after selection and mutation:

    j   = 2N - i
    a   = (1+s)   * i^2          (AA genotypes, weighted by fitness)
    b   = (1+s*h) * i * j        (Aa genotypes)
    c   = j^2                    (aa genotypes)
    q_i = ((a + b)(1 - u) + (b + c) v) / (a + 2b + c)
"""

from __future__ import annotations

import numpy as np

from wfes.parameters import ModelParameters


def sampling_coefficient(copies, params: ModelParameters):
    """
    Expected post-selection, post-mutation frequency of "A".

    Parameters:
    -----------
    copies : int or array_like
        Current number of "A" copies (0..2N)
    params : ModelParameters

    Returns:
    --------
    float or numpy.ndarray
        q in [0, 1], same shape as ``copies``
    """
    i = np.asarray(copies, dtype=float)
    j = params.copies - i
    s = params.selection
    h = params.dominance_coefficient
    u = params.forward_mutation_rate
    v = params.backward_mutation_rate

    a = (1.0 + s) * i * i
    b = (1.0 + s * h) * i * j
    c = j * j
    w_bar = a + 2.0 * b + c
    q = ((a + b) * (1.0 - u) + (b + c) * v) / w_bar
    # rounding only; the formula itself stays in [0, 1] for valid parameters
    q = np.clip(q, 0.0, 1.0)
    if q.ndim == 0:
        return float(q)
    return q


def extinction_step_probability(copies, params: ModelParameters):
    """Probability (1 - q)^(2N) of jumping straight to 0 copies in one generation."""
    q = np.asarray(sampling_coefficient(copies, params), dtype=float)
    with np.errstate(divide="ignore"):
        p = np.exp(params.copies * np.log1p(-q))
    if p.ndim == 0:
        return float(p)
    return p
