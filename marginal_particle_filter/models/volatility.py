"""
Stationary AR(1) log-volatility process used as the sampled state.

h_1 ~ N(0, sigma_v^2 / (1 - phi^2)),  h_t = phi * h_{t-1} + sigma_v * eta_t
"""

import numpy as np
from numpy.random import Generator
from scipy.stats import norm


def make_log_volatility_process(phi: float, sigma_v: float) -> dict:
    """
    Build the x2-side functions of a stochastic-volatility model.

    Args:
        phi: Persistence, |phi| < 1
        sigma_v: Innovation standard deviation, > 0

    Returns:
        Dict with log_initial_density, log_transition_density,
        sample_initial and sample_transition, ready to pass to the
        model factories.
    """
    if not abs(phi) < 1.0:
        raise ValueError(f"phi must satisfy |phi| < 1, got {phi}")
    if sigma_v <= 0.0:
        raise ValueError(f"sigma_v must be positive, got {sigma_v}")

    stationary_sd = sigma_v / np.sqrt(1.0 - phi ** 2)

    def log_initial_density(h: np.ndarray) -> float:
        return float(norm.logpdf(h[0], loc=0.0, scale=stationary_sd))

    def log_transition_density(h: np.ndarray, h_prev: np.ndarray) -> float:
        return float(norm.logpdf(h[0], loc=phi * h_prev[0], scale=sigma_v))

    def sample_initial(rng: Generator) -> np.ndarray:
        return np.array([stationary_sd * rng.standard_normal()])

    def sample_transition(h_prev: np.ndarray, rng: Generator) -> np.ndarray:
        return np.array([phi * h_prev[0] + sigma_v * rng.standard_normal()])

    return dict(
        log_initial_density=log_initial_density,
        log_transition_density=log_transition_density,
        sample_initial=sample_initial,
        sample_transition=sample_transition,
    )
