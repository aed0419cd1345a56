"""
Test suite for the Rao-Blackwellized particle filter engine.

Covers the single-particle identity, log-domain stability, resampling
schedule, expectation ordering, time advance, exactness when the sampled
state is irrelevant, and the error taxonomy.

Run: pytest test_rbpf.py -v
"""

import itertools

import pytest
import numpy as np
from scipy.stats import norm

from marginal_particle_filter.exceptions import (
    DegenerateWeightsError,
    InvalidDensityError,
    ShapeMismatchError,
)
from marginal_particle_filter.filters.closed_form import HMMFilter, KalmanFilter
from marginal_particle_filter.filters.rbpf import RaoBlackwellizedParticleFilter
from marginal_particle_filter.models.base import make_hmm_model, make_kalman_model
from marginal_particle_filter.models.regime_switching import make_regime_switching_sv_model
from marginal_particle_filter.utils.resampling import Resampler


# ============================================================================
# Assertion helpers
# ============================================================================

def assert_close(name: str, a, b, atol: float, rtol: float):
    """Check two arrays are close within tolerances."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    max_abs = np.max(np.abs(a - b))

    if not np.allclose(a, b, atol=atol, rtol=rtol):
        pytest.fail(
            f"{name}: FAILED\n"
            f"  max_abs_diff={max_abs:.3e}\n"
            f"  required: atol={atol:.0e}, rtol={rtol:.0e}"
        )


def assert_state_unchanged(pf, before):
    """Compare a filter's observable state with a snapshot from `snapshot`."""
    after = snapshot(pf)
    assert after["time"] == before["time"]
    assert after["log_cond_like"] == before["log_cond_like"]
    np.testing.assert_array_equal(after["log_weights"], before["log_weights"])
    if before["samples"] is None:
        assert after["samples"] is None
    else:
        np.testing.assert_array_equal(after["samples"], before["samples"])
        np.testing.assert_array_equal(after["summaries"], before["summaries"])


def snapshot(pf):
    swarm = pf.swarm
    return {
        "time": pf.current_time,
        "log_cond_like": pf.get_log_cond_like(),
        "log_weights": pf.log_weights,
        "samples": None if swarm is None else swarm.samples,
        "summaries": None if swarm is None else np.stack(
            [f.filter_summary for f in swarm.inner_filters]
        ),
    }


# ============================================================================
# Model factories
# ============================================================================

REGIME_MU = np.array([-1.0, 1.0])
REGIME_P = np.array([[0.9, 0.1], [0.2, 0.8]])


def make_scripted_hmm_model(
    values,
    log_initial_density=None,
    log_inner=None,
    log_transition_density=None,
):
    """
    HMM-embedded model whose proposals are deterministic.

    Particle i draws values[i] at time 1 and keeps it afterwards; the
    proposal densities are 1 so the weights are driven only by
    log_initial_density, log_transition_density and the inner filter,
    whose log-likelihood each step is log_inner(x2, y).
    """
    draws = itertools.cycle(values)
    if log_initial_density is None:
        log_initial_density = lambda x2: 0.0
    if log_inner is None:
        log_inner = lambda x2, y: 0.0
    if log_transition_density is None:
        log_transition_density = lambda x2, x2_prev: 0.0

    def update_inner(hmm, y, x2):
        hmm.update(np.full(2, log_inner(x2, y)))

    return make_hmm_model(
        sampled_dim=1,
        obs_dim=1,
        log_initial_density=log_initial_density,
        log_transition_density=log_transition_density,
        initial_probs=lambda x2: np.array([0.25, 0.75]),
        transition_matrix=lambda x2: np.eye(2),
        update_inner=update_inner,
        sample_initial_proposal=lambda y, rng: np.array([next(draws)]),
        log_initial_proposal_density=lambda x2, y: 0.0,
        sample_proposal=lambda x2_prev, y, rng: x2_prev.copy(),
        log_proposal_density=lambda x2, x2_prev, y: 0.0,
    )


def make_hmm_model_ignoring_x2():
    """Regime model whose observation density does not depend on x2."""
    def update_inner(hmm, y, x2):
        hmm.update(norm.logpdf(y[0], loc=REGIME_MU, scale=0.8))

    return make_hmm_model(
        sampled_dim=1,
        obs_dim=1,
        log_initial_density=lambda x2: float(norm.logpdf(x2[0])),
        log_transition_density=lambda x2, x2_prev: float(norm.logpdf(x2[0], loc=x2_prev[0])),
        initial_probs=lambda x2: np.array([0.5, 0.5]),
        transition_matrix=lambda x2: REGIME_P,
        update_inner=update_inner,
        sample_initial=lambda rng: rng.normal(size=1),
        sample_transition=lambda x2_prev, rng: x2_prev + rng.normal(size=1),
    )


def make_kalman_model_ignoring_x2(a=0.9, q=0.2, r=0.5):
    """Linear Gaussian signal whose noise does not depend on x2."""
    def update_inner(kf, y, x2):
        kf.update(y, [[1.0]], [[r]], A=[[a]], Q=[[q]])

    return make_kalman_model(
        sampled_dim=1,
        obs_dim=1,
        log_initial_density=lambda x2: float(norm.logpdf(x2[0])),
        log_transition_density=lambda x2, x2_prev: float(norm.logpdf(x2[0], loc=x2_prev[0])),
        initial_mean=lambda x2: np.zeros(1),
        initial_cov=lambda x2: np.array([[1.0]]),
        update_inner=update_inner,
        sample_initial=lambda rng: rng.normal(size=1),
        sample_transition=lambda x2_prev, rng: x2_prev + rng.normal(size=1),
    )


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def regime_model():
    return make_regime_switching_sv_model(mu=REGIME_MU, transition=REGIME_P, phi=0.9, sigma_v=0.4)


@pytest.fixture
def observations():
    return np.array([0.8, 1.3, -0.2, -1.5, -0.7, 0.4, 1.1, 0.9])


# ============================================================================
# Construction
# ============================================================================

class TestConstruction:

    @pytest.mark.parametrize("schedule", [0, -1, 1.5, True, None])
    def test_rejects_bad_schedule(self, regime_model, schedule):
        with pytest.raises(ValueError):
            RaoBlackwellizedParticleFilter(regime_model, n_particles=10, resample_schedule=schedule)

    @pytest.mark.parametrize("n_particles", [0, -5, 2.0])
    def test_rejects_bad_particle_count(self, regime_model, n_particles):
        with pytest.raises(ValueError):
            RaoBlackwellizedParticleFilter(regime_model, n_particles=n_particles)

    def test_initial_state(self, regime_model):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=4, resample_schedule=3)

        assert pf.current_time == 0
        assert pf.get_log_cond_like() == 0.0
        assert pf.get_expectations() == []
        np.testing.assert_array_equal(pf.log_weights, np.zeros(4))
        assert pf.swarm is None


# ============================================================================
# Core recursion
# ============================================================================

class TestRecursion:

    @pytest.mark.parametrize("schedule", [1, 1000])
    def test_single_particle_identity(self, regime_model, observations, schedule):
        """With one particle the predictive log-likelihood is the inner filter's."""
        pf = RaoBlackwellizedParticleFilter(
            regime_model, n_particles=1, resample_schedule=schedule, seed=11
        )

        engine_ll, inner_ll, hs = [], [], []
        for y in observations:
            pf.filter([y])
            swarm = pf.swarm
            engine_ll.append(pf.get_log_cond_like())
            inner_ll.append(swarm.inner_filters[0].log_cond_like)
            hs.append(swarm.samples[0, 0])

        assert_close("engine vs inner", engine_ll, inner_ll, atol=1e-10, rtol=1e-12)

        # Replay the sampled volatility path through a standalone HMM filter
        hmm = HMMFilter([0.5, 0.5], REGIME_P)
        replay = []
        for y, h in zip(observations, hs):
            hmm.update(norm.logpdf(y, loc=REGIME_MU, scale=np.exp(0.5 * h)))
            replay.append(hmm.log_cond_like)
        assert_close("engine vs replay", engine_ll, replay, atol=1e-10, rtol=1e-12)

    def test_first_step_log_mean_exp(self):
        """log p(y_1) is the log-mean of the initial weights."""
        model = make_scripted_hmm_model(
            [1.0, 2.0, 3.0], log_initial_density=lambda x2: float(np.log(x2[0]))
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=3, resample_schedule=100)
        pf.filter([0.0])

        assert pf.get_log_cond_like() == pytest.approx(np.log(2.0), rel=1e-12)
        assert_close("log weights", pf.log_weights, np.log([1.0, 2.0, 3.0]), atol=1e-15, rtol=0)

    def test_recursive_step_ratio(self):
        """
        log p(y_2 | y_1) is the ratio of updated to previous weight sums.

        Inner log-likelihood log(x2) each step and initial density x2 give
        w_1 = x^2 = (1, 4, 9) and w_2 = x^3 = (1, 8, 27).
        """
        model = make_scripted_hmm_model(
            [1.0, 2.0, 3.0],
            log_initial_density=lambda x2: float(np.log(x2[0])),
            log_inner=lambda x2, y: float(np.log(x2[0])),
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=3, resample_schedule=100)

        pf.filter([0.0], [lambda probs, x2: x2])
        assert pf.get_log_cond_like() == pytest.approx(np.log(14.0 / 3.0), rel=1e-12)
        assert_close("E[x2] t=1", pf.get_expectations()[0], [36.0 / 14.0], atol=0, rtol=1e-12)

        pf.filter([0.0], [lambda probs, x2: x2])
        assert pf.get_log_cond_like() == pytest.approx(np.log(36.0 / 14.0), rel=1e-12)
        assert_close("E[x2] t=2", pf.get_expectations()[0], [98.0 / 36.0], atol=0, rtol=1e-12)

    def test_wide_weight_range_is_stable(self):
        """Initial log-weights {0, -1e308} give log p(y_1) = log(1/2)."""
        model = make_scripted_hmm_model(
            [1.0, -1.0], log_initial_density=lambda x2: 0.0 if x2[0] > 0 else -1e308
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2, resample_schedule=100)
        pf.filter([0.0], [lambda probs, x2: x2])

        assert np.isfinite(pf.get_log_cond_like())
        assert pf.get_log_cond_like() == pytest.approx(-np.log(2.0), abs=1e-15)
        assert_close("E[x2]", pf.get_expectations()[0], [1.0], atol=1e-15, rtol=0)

    def test_time_advances_by_one(self, regime_model, observations):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=20, seed=0)
        for n, y in enumerate(observations, start=1):
            pf.filter([y])
            assert pf.current_time == n

    def test_log_cond_like_reflects_latest_call(self, regime_model, observations):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=50, seed=5)
        result = pf.run(observations)

        assert pf.get_log_cond_like() == result.log_likelihood_increments[-1]
        assert result.log_likelihood == pytest.approx(np.sum(result.log_likelihood_increments))

    def test_scalar_observation_accepted(self, regime_model):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=5, seed=0)
        pf.filter(0.3)
        assert pf.current_time == 1


# ============================================================================
# Exactness when the sampled state is irrelevant
# ============================================================================

class TestMarginalExactness:

    def test_hmm_variant_matches_forward_filter(self, observations):
        pf = RaoBlackwellizedParticleFilter(
            make_hmm_model_ignoring_x2(), n_particles=25, resample_schedule=2, seed=3
        )
        hmm = HMMFilter([0.5, 0.5], REGIME_P)

        for y in observations:
            pf.filter([y], [lambda probs, x2: probs])
            hmm.update(norm.logpdf(y, loc=REGIME_MU, scale=0.8))

            assert pf.get_log_cond_like() == pytest.approx(hmm.log_cond_like, abs=1e-10)
            assert_close("regime probs", pf.get_expectations()[0], hmm.filter_summary,
                         atol=1e-10, rtol=1e-10)

    def test_kalman_variant_matches_kalman_filter(self, observations):
        pf = RaoBlackwellizedParticleFilter(
            make_kalman_model_ignoring_x2(), n_particles=25, resample_schedule=3, seed=4
        )
        kf = KalmanFilter(np.zeros(1), np.eye(1))

        fns = [lambda moments, x2: moments.mean, lambda moments, x2: moments.cov]
        for y in observations:
            pf.filter([y], fns)
            kf.update([y], [[1.0]], [[0.5]], A=[[0.9]], Q=[[0.2]])

            mean, cov = pf.get_expectations()
            assert pf.get_log_cond_like() == pytest.approx(kf.log_cond_like, abs=1e-10)
            assert_close("mean", mean, kf.mean, atol=1e-10, rtol=1e-10)
            assert_close("cov", cov, kf.cov, atol=1e-10, rtol=1e-10)


# ============================================================================
# Expectations
# ============================================================================

class TestExpectations:

    def test_order_and_values(self):
        """Three functions on a 3-particle swarm with weights 1:2:3."""
        model = make_scripted_hmm_model(
            [1.0, 2.0, 3.0], log_initial_density=lambda x2: float(np.log(x2[0]))
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=3, resample_schedule=100)

        fns = [
            lambda probs, x2: x2,
            lambda probs, x2: probs[1] * x2,
            lambda probs, x2: np.eye(2) * x2[0],
        ]
        pf.filter([0.0], fns)
        expectations = pf.get_expectations()

        mean_x2 = 14.0 / 6.0
        assert len(expectations) == 3
        assert_close("E[x2]", expectations[0], [mean_x2], atol=1e-12, rtol=1e-12)
        assert_close("E[p1 x2]", expectations[1], [0.75 * mean_x2], atol=1e-12, rtol=1e-12)
        assert_close("E[I x2]", expectations[2], mean_x2 * np.eye(2), atol=1e-12, rtol=1e-12)

    def test_computed_before_resampling(self):
        """Expectations use the pre-resampling weights."""
        model = make_scripted_hmm_model(
            [1.0, 2.0, 3.0], log_initial_density=lambda x2: float(np.log(x2[0]))
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=3, resample_schedule=1, seed=0)
        pf.filter([0.0], [lambda probs, x2: x2])

        assert pf.resampled
        assert_close("E[x2]", pf.get_expectations()[0], [14.0 / 6.0], atol=1e-12, rtol=1e-12)

    def test_empty_function_list(self, regime_model):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=5, seed=0)
        pf.filter([0.1], [lambda probs, x2: x2])
        pf.filter([0.2])
        assert pf.get_expectations() == []

    def test_copy_out(self, regime_model):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=5, seed=0)
        pf.filter([0.1], [lambda probs, x2: probs])

        first = pf.get_expectations()
        first[0][:] = -1.0
        assert np.all(pf.get_expectations()[0] >= 0.0)

    def test_run_stacks_history(self, regime_model, observations):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=30, seed=1)
        result = pf.run(observations, [lambda probs, x2: probs, lambda probs, x2: x2[0]])

        assert result.T == len(observations)
        assert result.expectations[0].shape == (len(observations), 2)
        assert result.expectations[1].shape == (len(observations),)
        assert_close("probs sum", result.expectations[0].sum(axis=1), 1.0, atol=1e-12, rtol=0)


# ============================================================================
# Resampling
# ============================================================================

class CountingResampler(Resampler):
    def __init__(self, method="multinomial"):
        super().__init__(method)
        self.calls = 0

    def __call__(self, inner_filters, samples, log_weights, rng):
        self.calls += 1
        return super().__call__(inner_filters, samples, log_weights, rng)


class TestResampling:

    def test_schedule(self, regime_model, observations):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=10, resample_schedule=3, seed=2)
        result = pf.run(observations)

        expected = np.array([(t + 1) % 3 == 0 for t in range(len(observations))])
        np.testing.assert_array_equal(result.resampled, expected)

    @pytest.mark.parametrize("method", ["systematic", "stratified", "multinomial", "residual"])
    def test_cardinality_and_neutral_weights(self, regime_model, observations, method):
        N = 12
        pf = RaoBlackwellizedParticleFilter(
            regime_model, n_particles=N, resample_schedule=2, resample_method=method, seed=8
        )
        for y in observations:
            pf.filter([y])
            swarm = pf.swarm
            assert swarm.n_particles == N
            assert len(swarm.inner_filters) == N
            assert swarm.samples.shape == (N, 1)
            if pf.resampled:
                assert np.all(swarm.log_weights == swarm.log_weights[0])

    def test_swarm_is_a_copy(self, regime_model):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=4, seed=0)
        pf.filter([0.5])

        swarm = pf.swarm
        before = swarm.inner_filters[0].filter_summary
        swarm.samples[:] = 99.0
        swarm.log_weights[:] = -5.0
        swarm.inner_filters[0].update(np.log([0.999, 0.001]))

        assert not np.any(pf.swarm.samples == 99.0)
        assert not np.any(pf.log_weights == -5.0)
        np.testing.assert_array_equal(pf.swarm.inner_filters[0].filter_summary, before)


# ============================================================================
# End-to-end scenario
# ============================================================================

class TestEndToEnd:

    OBS = np.array([1.0, 0.5, -0.3])

    def _run(self, seed):
        model = make_regime_switching_sv_model(mu=[-1.0, 1.0], transition=REGIME_P)
        resampler = CountingResampler()
        pf = RaoBlackwellizedParticleFilter(
            model, n_particles=3, resample_schedule=2, resampler=resampler, seed=seed
        )
        return pf, resampler, pf.run(self.OBS, [lambda probs, x2: probs])

    def test_resamples_once_after_second_observation(self):
        pf, resampler, result = self._run(seed=2024)

        assert resampler.calls == 1
        np.testing.assert_array_equal(result.resampled, [False, True, False])
        assert pf.current_time == 3
        assert np.all(np.isfinite(result.log_likelihood_increments))

    def test_reproducible_with_fixed_seed(self):
        _, _, res1 = self._run(seed=2024)
        _, _, res2 = self._run(seed=2024)
        np.testing.assert_array_equal(res1.log_likelihood_increments, res2.log_likelihood_increments)
        np.testing.assert_array_equal(res1.expectations[0], res2.expectations[0])

        _, _, res3 = self._run(seed=7)
        assert not np.array_equal(res1.log_likelihood_increments, res3.log_likelihood_increments)

    def test_reset_replays(self):
        pf, _, res1 = self._run(seed=2024)
        pf.reset(seed=2024)
        assert pf.current_time == 0
        res2 = pf.run(self.OBS, [lambda probs, x2: probs])
        np.testing.assert_array_equal(res1.log_likelihood_increments, res2.log_likelihood_increments)


# ============================================================================
# Error handling
# ============================================================================

class TestErrors:

    def test_nan_initial_density(self):
        model = make_scripted_hmm_model([1.0, 2.0], log_initial_density=lambda x2: np.nan)
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2)
        before = snapshot(pf)

        with pytest.raises(InvalidDensityError):
            pf.filter([0.0])
        assert_state_unchanged(pf, before)

    def test_nan_transition_density_leaves_state(self):
        model = make_scripted_hmm_model(
            [1.0, 2.0],
            log_inner=lambda x2, y: -0.5 * y[0] ** 2,
            log_transition_density=lambda x2, x2_prev: np.nan,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2, resample_schedule=100)
        pf.filter([0.3])
        before = snapshot(pf)

        with pytest.raises(InvalidDensityError):
            pf.filter([1.0])
        assert_state_unchanged(pf, before)

    def test_zero_proposal_density_at_sample(self):
        model = make_hmm_model(
            sampled_dim=1,
            obs_dim=1,
            log_initial_density=lambda x2: 0.0,
            log_transition_density=lambda x2, x2_prev: 0.0,
            initial_probs=lambda x2: np.array([0.5, 0.5]),
            transition_matrix=lambda x2: np.eye(2),
            update_inner=lambda hmm, y, x2: hmm.update(np.zeros(2)),
            sample_initial_proposal=lambda y, rng: np.zeros(1),
            log_initial_proposal_density=lambda x2, y: -np.inf,
            sample_transition=lambda x2_prev, rng: x2_prev,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2)
        with pytest.raises(InvalidDensityError):
            pf.filter([0.0])
        assert pf.current_time == 0

    def test_degenerate_weights_reported(self):
        """An observation impossible under every particle is an error, not -inf."""
        model = make_scripted_hmm_model(
            [1.0, 2.0, 3.0],
            log_inner=lambda x2, y: -np.inf if y[0] > 100.0 else 0.0,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=3, resample_schedule=100)
        pf.filter([0.0])
        before = snapshot(pf)

        with pytest.raises(DegenerateWeightsError):
            pf.filter([1000.0])
        assert_state_unchanged(pf, before)

        # Recoverable: the next valid observation continues from t=1
        pf.filter([1.0])
        assert pf.current_time == 2

    def test_very_negative_likelihood_is_valid(self):
        model = make_scripted_hmm_model([1.0, 2.0], log_inner=lambda x2, y: -1e5)
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2)
        pf.filter([0.0])
        assert pf.get_log_cond_like() == pytest.approx(-1e5)

    def test_partial_collapse_warns(self):
        model = make_scripted_hmm_model(
            [1.0, -1.0], log_initial_density=lambda x2: 0.0 if x2[0] > 0 else -np.inf
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2, resample_schedule=100)
        with pytest.warns(RuntimeWarning):
            pf.filter([0.0])
        assert pf.get_log_cond_like() == pytest.approx(-np.log(2.0))

    def test_nan_inner_density_on_some_particles(self):
        """A NaN likelihood on a few particles is reported, not treated as zero weight."""
        model = make_scripted_hmm_model(
            [1.0, -1.0, 2.0, -2.0],
            log_inner=lambda x2, y: np.nan if x2[0] < 0 else -0.5 * y[0] ** 2,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=4, resample_schedule=100)
        before = snapshot(pf)

        with pytest.raises(InvalidDensityError):
            pf.filter([0.3])
        assert_state_unchanged(pf, before)

    def test_nan_inner_density_after_first_step(self):
        model = make_scripted_hmm_model(
            [1.0, -1.0, 2.0],
            log_inner=lambda x2, y: np.nan if (x2[0] < 0 and y[0] > 10.0) else 0.0,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=3, resample_schedule=100)
        pf.filter([0.0])
        before = snapshot(pf)

        with pytest.raises(InvalidDensityError):
            pf.filter([20.0])
        assert_state_unchanged(pf, before)

    def test_overflowing_weights_rejected(self):
        """Finite densities whose sum overflows to +inf are an error."""
        model = make_scripted_hmm_model(
            [1.0, 2.0],
            log_initial_density=lambda x2: 1e308,
            log_inner=lambda x2, y: 1e308,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2, resample_schedule=1)
        before = snapshot(pf)

        with pytest.raises(InvalidDensityError):
            pf.filter([0.0])
        assert_state_unchanged(pf, before)

    def test_overflow_in_recursive_step_rejected(self):
        model = make_scripted_hmm_model(
            [1.0, 2.0],
            log_transition_density=lambda x2, x2_prev: 1e308,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2, resample_schedule=100)
        pf.filter([0.0])
        pf.filter([0.0])
        before = snapshot(pf)

        with pytest.raises(InvalidDensityError):
            pf.filter([0.0])
        assert_state_unchanged(pf, before)

    def test_inconsistent_expectation_shape(self):
        model = make_scripted_hmm_model([1.0, 2.0])
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2)

        with pytest.raises(ShapeMismatchError):
            pf.filter([0.0], [lambda probs, x2: np.zeros(int(x2[0]))])
        assert pf.current_time == 0

    def test_wrong_observation_shape(self, regime_model):
        pf = RaoBlackwellizedParticleFilter(regime_model, n_particles=2)
        with pytest.raises(ShapeMismatchError):
            pf.filter([0.0, 1.0])

    def test_wrong_sample_shape(self):
        model = make_hmm_model(
            sampled_dim=1,
            obs_dim=1,
            log_initial_density=lambda x2: 0.0,
            log_transition_density=lambda x2, x2_prev: 0.0,
            initial_probs=lambda x2: np.array([0.5, 0.5]),
            transition_matrix=lambda x2: np.eye(2),
            update_inner=lambda hmm, y, x2: hmm.update(np.zeros(2)),
            sample_initial=lambda rng: np.zeros(3),
            sample_transition=lambda x2_prev, rng: x2_prev,
        )
        pf = RaoBlackwellizedParticleFilter(model, n_particles=2)
        with pytest.raises(ShapeMismatchError):
            pf.filter([0.0])

    def test_error_classes_are_value_errors(self):
        assert issubclass(InvalidDensityError, ValueError)
        assert issubclass(ShapeMismatchError, ValueError)
        assert issubclass(DegenerateWeightsError, FloatingPointError)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
