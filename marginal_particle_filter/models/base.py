"""
Conditional model specification for Rao-Blackwellized filtering.

The latent state splits into x1 (tractable, filtered in closed form per
particle) and x2 (sampled). A model is a bundle of pure functions; the
filter never inherits from it.

    x2_1 ~ mu(x2_1),          x2_t ~ f(x2_t | x2_{t-1})
    x1, y | x2  handled exactly by the inner filter

Densities are on the log scale. A density of zero is -inf; NaN or +inf is
a contract violation and is rejected by the filter.
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Callable, Optional
from numpy.random import Generator

from ..filters.closed_form import HMMFilter, KalmanFilter


@dataclass
class ConditionalModel:
    """
    Model contract consumed by RaoBlackwellizedParticleFilter.

    Vectors x2 are [sampled_dim], observations y are [obs_dim]; every
    function acts on a single particle.

    Attributes:
        sampled_dim: Dimension of the sampled state x2
        obs_dim: Dimension of the observation y

        log_initial_density: log mu(x2_1)
        sample_initial_proposal: (y_1, rng) -> x2_1 ~ q_1(. | y_1)
        log_initial_proposal_density: log q_1(x2_1 | y_1), args (x2_1, y_1)

        log_transition_density: log f(x2_t | x2_{t-1}), args (x2_t, x2_{t-1})
        sample_proposal: (x2_{t-1}, y_t, rng) -> x2_t ~ q(. | x2_{t-1}, y_t)
        log_proposal_density: log q(x2_t | x2_{t-1}, y_t), args (x2_t, x2_{t-1}, y_t)

        init_inner: x2_1 -> fresh closed-form filter for x1_1
        update_inner: (filter, y_t, x2_t) -> None, updates the filter in place

        simulator: Optional joint simulator, see `simulate`
    """
    sampled_dim: int
    obs_dim: int

    log_initial_density: Callable[[np.ndarray], float]
    sample_initial_proposal: Callable[[np.ndarray, Generator], np.ndarray]
    log_initial_proposal_density: Callable[[np.ndarray, np.ndarray], float]

    log_transition_density: Callable[[np.ndarray, np.ndarray], float]
    sample_proposal: Callable[[np.ndarray, np.ndarray, Generator], np.ndarray]
    log_proposal_density: Callable[[np.ndarray, np.ndarray, np.ndarray], float]

    init_inner: Callable[[np.ndarray], Any]
    update_inner: Callable[[Any, np.ndarray, np.ndarray], None]

    # Optional: (T, rng) -> (x1 path, x2 path [T, d_s], y path [T, ny])
    simulator: Optional[Callable[[int, Generator], tuple]] = None

    def __post_init__(self):
        if self.sampled_dim < 1 or self.obs_dim < 1:
            raise ValueError(
                f"Dimensions must be positive, got sampled_dim={self.sampled_dim}, "
                f"obs_dim={self.obs_dim}"
            )

    def simulate(self, T: int, rng: Generator) -> tuple:
        """
        Simulate a trajectory from the model.

        Args:
            T: Number of time steps
            rng: NumPy random generator

        Returns:
            tractable_states: [T, ...] x1 path
            sampled_states: [T, d_s] x2 path
            observations: [T, ny] observations (y_1, ..., y_T)
        """
        if self.simulator is None:
            raise NotImplementedError("This model has no simulator")
        return self.simulator(T, rng)

    def __repr__(self) -> str:
        return f"ConditionalModel(d_s={self.sampled_dim}, ny={self.obs_dim})"


def _proposal_functions(
    log_initial_density,
    log_transition_density,
    sample_initial,
    sample_transition,
    sample_initial_proposal,
    log_initial_proposal_density,
    sample_proposal,
    log_proposal_density,
) -> dict:
    """
    Fill in missing proposal functions with the bootstrap choice.

    The bootstrap proposal is the prior at time 1 and the transition
    afterwards, so the proposal densities equal the model densities.
    """
    if sample_initial_proposal is None:
        if sample_initial is None:
            raise ValueError("Need sample_initial_proposal or sample_initial")
        sample_initial_proposal = lambda y, rng: sample_initial(rng)
        log_initial_proposal_density = lambda x2, y: log_initial_density(x2)
    elif log_initial_proposal_density is None:
        raise ValueError("sample_initial_proposal given without its density")

    if sample_proposal is None:
        if sample_transition is None:
            raise ValueError("Need sample_proposal or sample_transition")
        sample_proposal = lambda x2_prev, y, rng: sample_transition(x2_prev, rng)
        log_proposal_density = lambda x2, x2_prev, y: log_transition_density(x2, x2_prev)
    elif log_proposal_density is None:
        raise ValueError("sample_proposal given without its density")

    return dict(
        sample_initial_proposal=sample_initial_proposal,
        log_initial_proposal_density=log_initial_proposal_density,
        sample_proposal=sample_proposal,
        log_proposal_density=log_proposal_density,
    )


def make_hmm_model(
    sampled_dim: int,
    obs_dim: int,
    log_initial_density: Callable[[np.ndarray], float],
    log_transition_density: Callable[[np.ndarray, np.ndarray], float],
    initial_probs: Callable[[np.ndarray], np.ndarray],
    transition_matrix: Callable[[np.ndarray], np.ndarray],
    update_inner: Callable[[HMMFilter, np.ndarray, np.ndarray], None],
    sample_initial: Optional[Callable[[Generator], np.ndarray]] = None,
    sample_transition: Optional[Callable[[np.ndarray, Generator], np.ndarray]] = None,
    sample_initial_proposal: Optional[Callable] = None,
    log_initial_proposal_density: Optional[Callable] = None,
    sample_proposal: Optional[Callable] = None,
    log_proposal_density: Optional[Callable] = None,
    simulator: Optional[Callable[[int, Generator], tuple]] = None,
) -> ConditionalModel:
    """
    Create a model whose tractable state is a finite Markov chain.

    Args:
        sampled_dim: Dimension of x2
        obs_dim: Dimension of y
        log_initial_density: log mu(x2_1)
        log_transition_density: log f(x2_t | x2_{t-1})
        initial_probs: x2_1 -> [K] distribution of x1_1
        transition_matrix: x2_1 -> [K, K] row-stochastic transition matrix
        update_inner: (HMMFilter, y_t, x2_t) -> None, typically calls
            filter.update(log p(y_t | x1_t = k, x2_t) for each k)
        sample_initial: rng -> x2_1 ~ mu, used for a bootstrap proposal
        sample_transition: (x2_{t-1}, rng) -> x2_t ~ f, bootstrap proposal
        sample_initial_proposal, log_initial_proposal_density,
        sample_proposal, log_proposal_density: Custom proposal (optional)
        simulator: (T, rng) -> trajectory arrays (optional)

    Returns:
        ConditionalModel instance
    """
    def init_inner(x2: np.ndarray) -> HMMFilter:
        return HMMFilter(initial_probs(x2), transition_matrix(x2))

    proposals = _proposal_functions(
        log_initial_density, log_transition_density,
        sample_initial, sample_transition,
        sample_initial_proposal, log_initial_proposal_density,
        sample_proposal, log_proposal_density,
    )

    return ConditionalModel(
        sampled_dim=sampled_dim,
        obs_dim=obs_dim,
        log_initial_density=log_initial_density,
        log_transition_density=log_transition_density,
        init_inner=init_inner,
        update_inner=update_inner,
        simulator=simulator,
        **proposals,
    )


def make_kalman_model(
    sampled_dim: int,
    obs_dim: int,
    log_initial_density: Callable[[np.ndarray], float],
    log_transition_density: Callable[[np.ndarray, np.ndarray], float],
    initial_mean: Callable[[np.ndarray], np.ndarray],
    initial_cov: Callable[[np.ndarray], np.ndarray],
    update_inner: Callable[[KalmanFilter, np.ndarray, np.ndarray], None],
    sample_initial: Optional[Callable[[Generator], np.ndarray]] = None,
    sample_transition: Optional[Callable[[np.ndarray, Generator], np.ndarray]] = None,
    sample_initial_proposal: Optional[Callable] = None,
    log_initial_proposal_density: Optional[Callable] = None,
    sample_proposal: Optional[Callable] = None,
    log_proposal_density: Optional[Callable] = None,
    simulator: Optional[Callable[[int, Generator], tuple]] = None,
) -> ConditionalModel:
    """
    Create a model whose tractable state is conditionally linear Gaussian.

    Args:
        sampled_dim: Dimension of x2
        obs_dim: Dimension of y
        log_initial_density: log mu(x2_1)
        log_transition_density: log f(x2_t | x2_{t-1})
        initial_mean: x2_1 -> [nx] mean of x1_1
        initial_cov: x2_1 -> [nx, nx] covariance of x1_1
        update_inner: (KalmanFilter, y_t, x2_t) -> None, typically calls
            filter.update(y_t, H, R, A, Q) with matrices built from x2_t
        sample_initial: rng -> x2_1 ~ mu, used for a bootstrap proposal
        sample_transition: (x2_{t-1}, rng) -> x2_t ~ f, bootstrap proposal
        sample_initial_proposal, log_initial_proposal_density,
        sample_proposal, log_proposal_density: Custom proposal (optional)
        simulator: (T, rng) -> trajectory arrays (optional)

    Returns:
        ConditionalModel instance
    """
    def init_inner(x2: np.ndarray) -> KalmanFilter:
        return KalmanFilter(initial_mean(x2), initial_cov(x2))

    proposals = _proposal_functions(
        log_initial_density, log_transition_density,
        sample_initial, sample_transition,
        sample_initial_proposal, log_initial_proposal_density,
        sample_proposal, log_proposal_density,
    )

    return ConditionalModel(
        sampled_dim=sampled_dim,
        obs_dim=obs_dim,
        log_initial_density=log_initial_density,
        log_transition_density=log_transition_density,
        init_inner=init_inner,
        update_inner=update_inner,
        simulator=simulator,
        **proposals,
    )
