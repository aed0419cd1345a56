"""
Log-domain weight arithmetic.

Particle weights are kept unnormalized in log space. Every reduction here
subtracts the running maximum before exponentiating so that very large or
very small log-weights neither overflow nor underflow.
"""

import numpy as np


def log_sum_exp(log_values: np.ndarray) -> float:
    """
    Stable log(sum(exp(log_values))).

    Args:
        log_values: [N] Log-domain values (may contain -inf)

    Returns:
        Log of the sum; -inf if every entry is -inf
    """
    log_values = np.asarray(log_values, dtype=np.float64)
    m = np.max(log_values)
    if m == -np.inf:
        return -np.inf
    return float(m + np.log(np.sum(np.exp(log_values - m))))


def log_mean_exp(log_values: np.ndarray) -> float:
    """
    Stable log(mean(exp(log_values))).

    Args:
        log_values: [N] Log-domain values

    Returns:
        Log of the average
    """
    log_values = np.asarray(log_values, dtype=np.float64)
    return log_sum_exp(log_values) - np.log(log_values.shape[0])


def log_ratio_of_sums(log_numer: np.ndarray, log_denom: np.ndarray) -> float:
    """
    Stable log(sum(exp(log_numer)) / sum(exp(log_denom))).

    Each sum is stabilised by its own maximum. With log_numer the updated
    log-weights and log_denom the previous ones this is the sequential
    importance sampling estimate of log p(y_t | y_{1:t-1}).

    Args:
        log_numer: [N] Log-weights after the increment
        log_denom: [N] Log-weights before the increment

    Returns:
        Log ratio (-inf if the numerator vanishes)
    """
    return log_sum_exp(log_numer) - log_sum_exp(log_denom)


def weighted_expectation(values: np.ndarray, log_weights: np.ndarray) -> np.ndarray:
    """
    Self-normalized importance sampling average.

    Computes sum_i w_i h_i / sum_i w_i with w_i = exp(lw_i - max lw).
    Particles with zero relative weight are left out of the sum, so a NaN
    or inf value attached to a dead particle does not leak into the result.

    Args:
        values: [N, *shape] Per-particle function values
        log_weights: [N] Unnormalized log-weights

    Returns:
        estimate: [*shape] Weighted average
    """
    values = np.asarray(values, dtype=np.float64)
    log_weights = np.asarray(log_weights, dtype=np.float64)

    m = np.max(log_weights)
    rel = np.exp(log_weights - m)
    alive = rel > 0.0

    numer = np.tensordot(rel[alive], values[alive], axes=1)
    return numer / np.sum(rel[alive])
