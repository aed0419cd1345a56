"""
Rao-Blackwellized (marginal) particle filter.

The sampled state component x2 is propagated by sequential importance
sampling; for every particle the tractable component x1 is filtered exactly
by an embedded closed-form filter (HMMFilter or KalmanFilter) conditioned on
that particle's x2 history. The engine is the same for both inner filters;
only the model bundle differs.
"""

import logging
import warnings
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

import numpy as np
from numpy.random import Generator, default_rng

from .base import ParticleSwarm, RBPFResult
from ..exceptions import DegenerateWeightsError, InvalidDensityError, ShapeMismatchError
from ..utils.resampling import (
    Resampler,
    ResampleMethod,
    effective_sample_size,
    normalize_log_weights,
)
from ..utils.weights import log_mean_exp, log_ratio_of_sums, weighted_expectation

if TYPE_CHECKING:
    from ..models.base import ConditionalModel

logger = logging.getLogger(__name__)

# h(filter_summary, x2) -> array, averaged to estimate E[h(x1_t, x2_t) | y_{1:t}]
ExpectationFn = Callable[[Any, np.ndarray], Any]


def _is_positive_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool) and value > 0


class RaoBlackwellizedParticleFilter:
    """
    Rao-Blackwellized particle filter over a fixed swarm.

    Feed one observation per `filter` call; read the results through
    `get_log_cond_like` and `get_expectations`. Resampling happens after
    every `resample_schedule`-th observation.
    """

    def __init__(
        self,
        model: "ConditionalModel",
        n_particles: int = 1000,
        resample_schedule: int = 1,
        resample_method: ResampleMethod = "multinomial",
        resampler: Optional[Callable] = None,
        seed: Optional[int] = None,
        rng: Optional[Generator] = None,
    ):
        """
        Args:
            model: ConditionalModel (see models.make_hmm_model / make_kalman_model)
            n_particles: Number of particles
            resample_schedule: Resample when (time + 1) % resample_schedule == 0
            resample_method: Resampling scheme used when resampler is None
            resampler: Custom (filters, samples, log_weights, rng) ->
                (filters, samples, log_weights) callable
            seed: Random seed (ignored if rng is provided)
            rng: NumPy random generator
        """
        if not _is_positive_int(n_particles):
            raise ValueError(f"n_particles must be a positive integer, got {n_particles!r}")
        if not _is_positive_int(resample_schedule):
            raise ValueError(
                f"resample_schedule must be a positive integer, got {resample_schedule!r}"
            )

        self.model = model
        self.n_particles = int(n_particles)
        self.resample_schedule = int(resample_schedule)
        self.resampler = resampler if resampler is not None else Resampler(resample_method)
        self.seed = seed
        self.rng = rng if rng is not None else default_rng(seed)

        self._init_state()

    def _init_state(self):
        N = self.n_particles
        self._now = 0
        self._last_log_cond_like = 0.0
        self._expectations: List[np.ndarray] = []
        # Particle contents are undefined until the first observation
        self._samples: Optional[np.ndarray] = None
        self._inner_filters: Optional[list] = None
        self._log_weights = np.zeros(N)
        self._ess = float(N)
        self._resampled = False

    def reset(self, seed: Optional[int] = None, rng: Optional[Generator] = None):
        """Discard the swarm and start again at time 0."""
        if rng is not None:
            self.rng = rng
        elif seed is not None:
            self.seed = seed
            self.rng = default_rng(seed)
        self._init_state()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def current_time(self) -> int:
        """Number of observations processed so far."""
        return self._now

    @property
    def ess(self) -> float:
        """Effective sample size at the last step, before resampling."""
        return self._ess

    @property
    def resampled(self) -> bool:
        """Whether the last step resampled the swarm."""
        return self._resampled

    @property
    def log_weights(self) -> np.ndarray:
        """[N] Current unnormalized log-weights (copy)."""
        return self._log_weights.copy()

    @property
    def swarm(self) -> Optional[ParticleSwarm]:
        """Copy of the current swarm, None before the first observation."""
        if self._samples is None:
            return None
        return ParticleSwarm(
            samples=self._samples,
            inner_filters=self._inner_filters,
            log_weights=self._log_weights,
        ).copy()

    def get_log_cond_like(self) -> float:
        """log p(y_t | y_{1:t-1}) of the latest observation (log p(y_1) at t=1)."""
        return self._last_log_cond_like

    def get_expectations(self) -> List[np.ndarray]:
        """Latest estimates of E[h(x1_t, x2_t) | y_{1:t}], one per function."""
        return [e.copy() for e in self._expectations]

    # -------------------------------------------------------------------------
    # Contract checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _log_density(value, name: str, allow_zero: bool = True) -> float:
        value = float(value)
        if np.isnan(value) or value == np.inf:
            raise InvalidDensityError(f"{name} returned log density {value}")
        if not allow_zero and value == -np.inf:
            raise InvalidDensityError(f"{name} returned zero density at its own sample")
        return value

    def _sample(self, value, name: str) -> np.ndarray:
        x2 = np.atleast_1d(np.array(value, dtype=np.float64))
        if x2.shape != (self.model.sampled_dim,):
            raise ShapeMismatchError(
                f"{name} returned shape {x2.shape}, expected ({self.model.sampled_dim},)"
            )
        return x2

    def _observation(self, observation) -> np.ndarray:
        y = np.atleast_1d(np.array(observation, dtype=np.float64))
        if y.shape != (self.model.obs_dim,):
            raise ShapeMismatchError(
                f"Observation has shape {y.shape}, expected ({self.model.obs_dim},)"
            )
        return y

    def _check_weights(self, log_weights: np.ndarray):
        dead = np.isneginf(log_weights)
        invalid = ~np.isfinite(log_weights) & ~dead
        if np.any(invalid):
            raise InvalidDensityError(
                f"{int(invalid.sum())} of {len(log_weights)} log-weights are NaN or +inf "
                f"at time {self._now + 1}; the weight increment overflowed"
            )
        if np.all(dead):
            raise DegenerateWeightsError(
                f"All {len(log_weights)} particles have zero weight at time "
                f"{self._now + 1}; log p(y_t | y_1:t-1) is undefined"
            )
        if np.any(dead):
            warnings.warn(
                f"{int(dead.sum())} of {len(log_weights)} particles have zero weight "
                f"at time {self._now + 1}",
                RuntimeWarning,
            )

    # -------------------------------------------------------------------------
    # Filtering
    # -------------------------------------------------------------------------

    def _initial_step(self, y: np.ndarray) -> tuple:
        """Draw x2_1, build fresh inner filters and weight by mu / q_1."""
        model = self.model
        N = self.n_particles

        samples = np.empty((N, model.sampled_dim))
        inner_filters = []
        log_weights = np.empty(N)

        for i in range(N):
            x2 = self._sample(model.sample_initial_proposal(y, self.rng),
                              "sample_initial_proposal")
            inner = model.init_inner(x2)
            model.update_inner(inner, y, x2)

            log_weights[i] = (
                self._log_density(inner.log_cond_like, "inner filter")
                + self._log_density(model.log_initial_density(x2), "log_initial_density")
                - self._log_density(model.log_initial_proposal_density(x2, y),
                                    "log_initial_proposal_density", allow_zero=False)
            )
            samples[i] = x2
            inner_filters.append(inner)

        self._check_weights(log_weights)

        # log p(y_1)
        log_cond_like = log_mean_exp(log_weights)
        return ParticleSwarm(samples, inner_filters, log_weights), log_cond_like

    def _recursive_step(self, y: np.ndarray) -> tuple:
        """Propagate x2, update inner filters and increment the log-weights."""
        model = self.model
        N = self.n_particles
        prev_log_weights = self._log_weights

        samples = np.empty((N, model.sampled_dim))
        inner_filters = []
        log_weights = np.empty(N)

        for i in range(N):
            x2_prev = self._samples[i]
            x2 = self._sample(model.sample_proposal(x2_prev.copy(), y, self.rng),
                              "sample_proposal")
            # Work on a copy so a failure later in the step leaves the swarm intact
            inner = self._inner_filters[i].copy()
            model.update_inner(inner, y, x2)

            log_weights[i] = prev_log_weights[i] + (
                self._log_density(inner.log_cond_like, "inner filter")
                + self._log_density(model.log_transition_density(x2, x2_prev),
                                    "log_transition_density")
                - self._log_density(model.log_proposal_density(x2, x2_prev, y),
                                    "log_proposal_density", allow_zero=False)
            )
            samples[i] = x2
            inner_filters.append(inner)

        self._check_weights(log_weights)

        # log p(y_t | y_{1:t-1}) = log sum w_t - log sum w_{t-1}
        log_cond_like = log_ratio_of_sums(log_weights, prev_log_weights)
        return ParticleSwarm(samples, inner_filters, log_weights), log_cond_like

    def _compute_expectations(
        self,
        expectation_fns: Sequence[ExpectationFn],
        swarm: ParticleSwarm,
    ) -> List[np.ndarray]:
        expectations = []
        for k, h in enumerate(expectation_fns):
            values = []
            for i in range(swarm.n_particles):
                value = np.asarray(
                    h(swarm.inner_filters[i].filter_summary, swarm.samples[i].copy()),
                    dtype=np.float64,
                )
                if values and value.shape != values[0].shape:
                    raise ShapeMismatchError(
                        f"Expectation function {k} returned shape {value.shape} for "
                        f"particle {i}, but {values[0].shape} for particle 0"
                    )
                values.append(value)
            expectations.append(weighted_expectation(np.stack(values), swarm.log_weights))
        return expectations

    def filter(
        self,
        observation: np.ndarray,
        expectation_fns: Sequence[ExpectationFn] = (),
    ):
        """
        Process one observation.

        Args:
            observation: [ny] Observation y_t
            expectation_fns: Functions h(filter_summary, x2) whose posterior
                means E[h(x1_t, x2_t) | y_{1:t}] are estimated this step.
                filter_summary is the inner filter's probability vector
                (HMMFilter) or GaussianMoments (KalmanFilter).

        Raises:
            ShapeMismatchError: Observation, sample or expectation of wrong shape
            InvalidDensityError: NaN or +inf log density from the model
            DegenerateWeightsError: Every particle has zero weight
        """
        y = self._observation(observation)

        if self._now == 0:
            swarm, log_cond_like = self._initial_step(y)
        else:
            swarm, log_cond_like = self._recursive_step(y)

        expectations = self._compute_expectations(expectation_fns, swarm)

        weights, _ = normalize_log_weights(swarm.log_weights)
        ess = effective_sample_size(weights)

        resampled = (self._now + 1) % self.resample_schedule == 0
        if resampled:
            swarm = ParticleSwarm(*self._resample(swarm))

        # Commit
        self._samples = swarm.samples
        self._inner_filters = swarm.inner_filters
        self._log_weights = swarm.log_weights
        self._last_log_cond_like = log_cond_like
        self._expectations = expectations
        self._ess = ess
        self._resampled = resampled
        self._now += 1

        logger.debug(
            "t=%d log p(y_t|y_1:t-1)=%.6g ESS=%.1f resampled=%s",
            self._now, log_cond_like, ess, resampled,
        )

    def _resample(self, swarm: ParticleSwarm) -> tuple:
        """Returns (samples, inner_filters, log_weights) after resampling."""
        inner_filters, samples, log_weights = self.resampler(
            swarm.inner_filters, swarm.samples, swarm.log_weights, self.rng
        )
        samples = np.asarray(samples, dtype=np.float64)
        log_weights = np.asarray(log_weights, dtype=np.float64)
        if (len(inner_filters) != self.n_particles
                or samples.shape != swarm.samples.shape
                or log_weights.shape != (self.n_particles,)):
            raise ShapeMismatchError("Resampler changed the size of the swarm")
        return samples, list(inner_filters), log_weights

    def run(
        self,
        observations: np.ndarray,
        expectation_fns: Sequence[ExpectationFn] = (),
    ) -> RBPFResult:
        """
        Filter a batch of observations, continuing from the current state.

        Args:
            observations: [T, ny] Observations (y_1, ..., y_T); a 1-D array
                is read as T scalar observations when ny == 1
            expectation_fns: As in `filter`

        Returns:
            RBPFResult
        """
        observations = np.asarray(observations, dtype=np.float64)
        if observations.ndim == 1:
            observations = observations.reshape(-1, self.model.obs_dim)

        T = observations.shape[0]
        log_likelihood_increments = np.zeros(T)
        ess_history = np.zeros(T)
        resampled_history = np.zeros(T, dtype=bool)
        expectation_history = [[] for _ in expectation_fns]

        for t in range(T):
            self.filter(observations[t], expectation_fns)

            log_likelihood_increments[t] = self._last_log_cond_like
            ess_history[t] = self._ess
            resampled_history[t] = self._resampled
            for k, e in enumerate(self._expectations):
                expectation_history[k].append(e)

        expectations = [
            np.stack(hist) if hist else np.empty((0,)) for hist in expectation_history
        ]

        return RBPFResult(
            log_likelihood_increments=log_likelihood_increments,
            log_likelihood=float(np.sum(log_likelihood_increments)),
            expectations=expectations,
            ess=ess_history,
            resampled=resampled_history,
        )

    def __repr__(self) -> str:
        return (
            f"RaoBlackwellizedParticleFilter(N={self.n_particles}, "
            f"resample_schedule={self.resample_schedule}, t={self._now})"
        )
