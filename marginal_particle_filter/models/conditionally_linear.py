"""
Latent AR(1) signal observed under stochastic volatility.

x1_t = a * x1_{t-1} + v_t,          v_t ~ N(0, q)
x2_t = h_t:                         AR(1) log-volatility
y_t = x1_t + exp(h_t / 2) * eps_t,  eps_t ~ N(0, 1)

Given the volatility path the signal is linear Gaussian, so each particle
carries a KalmanFilter.
"""

import numpy as np
from numpy.random import Generator

from .base import ConditionalModel, make_kalman_model
from .volatility import make_log_volatility_process


def make_conditionally_linear_sv_model(
    a: float = 0.95,
    q: float = 0.1,
    phi: float = 0.9,
    sigma_v: float = 0.3,
) -> ConditionalModel:
    """
    Create the conditionally linear stochastic-volatility model.

    Args:
        a: Signal AR coefficient, |a| < 1
        q: Signal innovation variance
        phi: Log-volatility persistence
        sigma_v: Log-volatility innovation standard deviation

    Returns:
        ConditionalModel instance (bootstrap proposal)
    """
    if not abs(a) < 1.0:
        raise ValueError(f"a must satisfy |a| < 1, got {a}")
    if q <= 0.0:
        raise ValueError(f"q must be positive, got {q}")

    A = np.array([[a]])
    Q = np.array([[q]])
    H = np.array([[1.0]])
    P0 = np.array([[q / (1.0 - a ** 2)]])

    volatility = make_log_volatility_process(phi, sigma_v)

    def update_inner(kf, y: np.ndarray, h: np.ndarray):
        R = np.array([[np.exp(h[0])]])
        kf.update(y, H, R, A=A, Q=Q)

    def simulator(T: int, rng: Generator) -> tuple:
        xs = np.zeros((T, 1))
        hs = np.zeros((T, 1))
        ys = np.zeros((T, 1))

        for t in range(T):
            if t == 0:
                xs[t, 0] = np.sqrt(P0[0, 0]) * rng.standard_normal()
                hs[t] = volatility["sample_initial"](rng)
            else:
                xs[t, 0] = a * xs[t - 1, 0] + np.sqrt(q) * rng.standard_normal()
                hs[t] = volatility["sample_transition"](hs[t - 1], rng)
            ys[t, 0] = xs[t, 0] + np.exp(0.5 * hs[t, 0]) * rng.standard_normal()

        return xs, hs, ys

    return make_kalman_model(
        sampled_dim=1,
        obs_dim=1,
        initial_mean=lambda h: np.zeros(1),
        initial_cov=lambda h: P0,
        update_inner=update_inner,
        simulator=simulator,
        **volatility,
    )
