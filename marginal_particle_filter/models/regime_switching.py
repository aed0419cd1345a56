"""
Markov-switching mean with stochastic volatility.

x1_t in {0, ..., K-1}:  Markov chain with transition matrix P
x2_t = h_t:             AR(1) log-volatility
y_t = mu[x1_t] + exp(h_t / 2) * eps_t,  eps_t ~ N(0, 1)

Given the volatility path the regime is a plain HMM, so each particle
carries an HMMFilter over the K regimes.
"""

import numpy as np
from typing import Optional
from numpy.random import Generator
from scipy.stats import norm

from .base import ConditionalModel, make_hmm_model
from .volatility import make_log_volatility_process


def make_regime_switching_sv_model(
    mu: np.ndarray,
    transition: np.ndarray,
    phi: float = 0.9,
    sigma_v: float = 0.3,
    initial_probs: Optional[np.ndarray] = None,
) -> ConditionalModel:
    """
    Create the regime-switching stochastic-volatility model.

    Args:
        mu: [K] Regime means
        transition: [K, K] Row-stochastic regime transition matrix
        phi: Log-volatility persistence
        sigma_v: Log-volatility innovation standard deviation
        initial_probs: [K] Regime distribution at time 1 (uniform if None)

    Returns:
        ConditionalModel instance (bootstrap proposal)
    """
    mu = np.asarray(mu, dtype=np.float64).ravel()
    transition = np.asarray(transition, dtype=np.float64)
    K = mu.shape[0]
    if initial_probs is None:
        initial_probs = np.full(K, 1.0 / K)
    initial_probs = np.asarray(initial_probs, dtype=np.float64)

    volatility = make_log_volatility_process(phi, sigma_v)

    def update_inner(hmm, y: np.ndarray, h: np.ndarray):
        log_cond_dens = norm.logpdf(y[0], loc=mu, scale=np.exp(0.5 * h[0]))
        hmm.update(log_cond_dens)

    def simulator(T: int, rng: Generator) -> tuple:
        regimes = np.zeros(T, dtype=int)
        hs = np.zeros((T, 1))
        ys = np.zeros((T, 1))

        for t in range(T):
            if t == 0:
                regimes[t] = rng.choice(K, p=initial_probs)
                hs[t] = volatility["sample_initial"](rng)
            else:
                regimes[t] = rng.choice(K, p=transition[regimes[t - 1]])
                hs[t] = volatility["sample_transition"](hs[t - 1], rng)
            ys[t, 0] = mu[regimes[t]] + np.exp(0.5 * hs[t, 0]) * rng.standard_normal()

        return regimes, hs, ys

    return make_hmm_model(
        sampled_dim=1,
        obs_dim=1,
        initial_probs=lambda h: initial_probs,
        transition_matrix=lambda h: transition,
        update_inner=update_inner,
        simulator=simulator,
        **volatility,
    )
