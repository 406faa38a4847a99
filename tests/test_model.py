"""End-to-end tests for wfes.model against known results and a dense reference."""

import math

import numpy as np
import pytest
from scipy.stats import binom

from wfes.model import WrightFisherAbsorbingChain, wfes
from wfes.parameters import ModelParameters
from wfes.solver import SolverOptions
from wfes.transition import sampling_coefficient


def dense_reference(params):
    """Extinction vector and first row of (I - Q)^-1 with numpy dense linear algebra."""
    n = params.copies
    copies = np.arange(1, n)
    q = sampling_coefficient(copies, params)
    Q = binom.pmf(copies[None, :], n, q[:, None])
    A = np.eye(n - 1) - Q
    R = (1.0 - q) ** n
    B1 = np.linalg.solve(A, R)
    N_row = np.linalg.inv(A)[0]
    return B1, N_row


GENERAL_CASES = [
    ModelParameters(10, 0.0, 0.0, 0.0, 0.5),
    ModelParameters(25, 0.02, 1e-4, 1e-4, 0.5),
    ModelParameters(40, -0.05, 1e-3, 0.0, 0.2),
    ModelParameters(30, 0.5, 0.0, 1e-3, 0.9),
]


class TestInvariants:
    @pytest.mark.parametrize("params", GENERAL_CASES)
    def test_probabilities_complementary(self, params):
        r = wfes(params)
        np.testing.assert_allclose(r.B1 + r.B2, 1.0)
        assert r.probability_extinction + r.probability_fixation == pytest.approx(1.0)

    @pytest.mark.parametrize("params", GENERAL_CASES)
    def test_vectors_non_negative(self, params):
        r = wfes(params)
        assert np.all(r.B1 >= 0)
        assert np.all(r.N_sojourn >= 0)
        assert len(r.B1) == len(r.N_sojourn) == params.matrix_size

    @pytest.mark.parametrize("params", GENERAL_CASES)
    def test_conditional_times_split_total_time(self, params):
        r = wfes(params)
        total = r.probability_extinction * r.time_extinction + r.probability_fixation * r.time_fixation
        assert total == pytest.approx(np.sum(r.N_sojourn), rel=1e-10)

    @pytest.mark.parametrize("params", GENERAL_CASES)
    def test_matches_dense_reference(self, params):
        B1, N_row = dense_reference(params)
        r = wfes(params)
        np.testing.assert_allclose(r.B1, np.clip(B1, 0, None), rtol=1e-8, atol=1e-12)
        np.testing.assert_allclose(r.N_sojourn, np.clip(N_row, 0, None), rtol=1e-8, atol=1e-12)


class TestKnownResults:
    @pytest.mark.parametrize("N", [10, 50, 200])
    def test_neutral_fixation_is_initial_frequency(self, N):
        r = wfes(ModelParameters(N, 0.0, 0.0, 0.0, 0.5))
        assert r.probability_fixation == pytest.approx(1.0 / (2 * N), rel=1e-8)
        np.testing.assert_allclose(r.B2, np.arange(1, 2 * N) / (2.0 * N), rtol=1e-7, atol=1e-12)

    def test_strong_positive_selection(self):
        r = wfes(ModelParameters(10, 100.0, 0.0, 0.0, 0.5))
        assert r.probability_extinction < 1e-3
        assert r.probability_fixation > 0.999

    @pytest.mark.parametrize("N", [10, 20, 50, 200])
    def test_strong_negative_selection(self, N):
        r = wfes(ModelParameters(N, -0.99, 0.0, 0.0, 0.5))
        assert r.probability_fixation == 0.0
        assert math.isnan(r.time_fixation)
        assert r.probability_extinction == pytest.approx(1.0)
        assert np.all(r.B2 >= 0.0)
        assert np.all(r.B2 <= 1.0)

    def test_beneficial_allele_fixes_more_often(self):
        neutral = wfes(ModelParameters(50, 0.0, 0.0, 0.0, 0.5))
        beneficial = wfes(ModelParameters(50, 0.01, 0.0, 0.0, 0.5))
        assert beneficial.probability_fixation > neutral.probability_fixation


class TestDegenerateMutation:
    def test_allele_always_mutates_away(self):
        """u = 1: every generation ends at 0 copies."""
        r = wfes(ModelParameters(10, 0.0, 1.0, 0.0, 0.5))
        np.testing.assert_array_equal(r.B1, np.ones(19))
        assert r.probability_fixation == 0.0
        assert math.isnan(r.time_fixation)
        expected_sojourn = np.zeros(19)
        expected_sojourn[0] = 1.0
        np.testing.assert_array_equal(r.N_sojourn, expected_sojourn)
        assert r.time_extinction == pytest.approx(1.0)
        assert r.count_before_extinction == pytest.approx(1.0)

    def test_allele_always_fixes(self):
        """v = 1: every generation ends at 2N copies."""
        r = wfes(ModelParameters(10, 0.0, 0.0, 1.0, 0.5))
        assert r.probability_extinction == 0.0
        assert math.isnan(r.time_extinction)
        assert math.isnan(r.count_before_extinction)
        assert r.probability_fixation == pytest.approx(1.0)
        assert r.time_fixation == pytest.approx(1.0)


class TestWrightFisherAbsorbingChain:
    def test_matrix_built_lazily_and_kept(self):
        chain = WrightFisherAbsorbingChain(ModelParameters(8, 0.1, 0.0, 0.0, 0.5))
        assert chain.A is None
        results = chain.solve()
        assert chain.A.shape == (15, 15)
        assert chain.results is results

    def test_rhs_vectors(self):
        chain = WrightFisherAbsorbingChain(ModelParameters(8, 0.0, 0.0, 0.0, 0.5))
        e0 = chain.sojourn_rhs()
        assert e0[0] == 1.0 and e0[1:].sum() == 0.0
        R = chain.extinction_rhs()
        np.testing.assert_allclose(R, (1.0 - np.arange(1, 16) / 16.0) ** 16)

    def test_solver_options_do_not_change_answer(self):
        params = ModelParameters(30, 0.03, 1e-4, 1e-4, 0.5)
        base = wfes(params)
        other = wfes(
            params,
            solver_options=SolverOptions(column_ordering="NATURAL", refinement_steps=0),
            block_size=5,
            max_workers=3,
        )
        np.testing.assert_allclose(other.B1, base.B1, rtol=1e-10, atol=1e-14)
        np.testing.assert_allclose(other.N_sojourn, base.N_sojourn, rtol=1e-10, atol=1e-14)
