"""
Resampling for Rao-Blackwellized particle swarms.

Index schemes map normalized weights to ancestor indices. The `Resampler`
turns an index assignment into a new swarm: every destination slot gets its
own copy of the selected inner filter, so duplicated particles never share
state.
"""

import logging
from typing import Callable, List, Literal, Optional, Tuple

import numpy as np
from numpy.random import Generator

from .weights import log_sum_exp

logger = logging.getLogger(__name__)

ResampleMethod = Literal["systematic", "stratified", "multinomial", "residual"]


def _search_cdf(weights: np.ndarray, u: np.ndarray) -> np.ndarray:
    """Invert the weight CDF at sorted points u in [0, 1)."""
    N = len(weights)
    cdf = np.cumsum(weights)
    cdf[-1] = 1.0  # guard against round-off in the last bin
    indices = np.searchsorted(cdf, u, side='right')
    return np.minimum(indices, N - 1)


def systematic_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Systematic resampling.

    One uniform offset shared by N evenly spaced points.

    Args:
        weights: [N] Normalized weights (must sum to 1)
        rng: NumPy random generator

    Returns:
        indices: [N] Ancestor indices
    """
    N = len(weights)
    u = (rng.uniform(0.0, 1.0) + np.arange(N)) / N
    return _search_cdf(weights, u)


def stratified_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Stratified resampling.

    One independent uniform inside each stratum [i/N, (i+1)/N).

    Args:
        weights: [N] Normalized weights (must sum to 1)
        rng: NumPy random generator

    Returns:
        indices: [N] Ancestor indices
    """
    N = len(weights)
    u = (np.arange(N) + rng.uniform(0.0, 1.0, N)) / N
    return _search_cdf(weights, u)


def multinomial_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Multinomial resampling (i.i.d. draws with replacement).

    Args:
        weights: [N] Normalized weights (must sum to 1)
        rng: NumPy random generator

    Returns:
        indices: [N] Ancestor indices
    """
    N = len(weights)
    return rng.choice(N, size=N, replace=True, p=weights)


def residual_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Residual resampling.

    Keeps floor(N * w_i) copies of each particle and fills the remaining
    slots by multinomial draws on the leftover mass.

    Args:
        weights: [N] Normalized weights (must sum to 1)
        rng: NumPy random generator

    Returns:
        indices: [N] Ancestor indices
    """
    N = len(weights)
    scaled = N * weights
    n_copies = np.floor(scaled).astype(int)
    indices = np.repeat(np.arange(N), n_copies)

    n_left = N - len(indices)
    if n_left > 0:
        leftover = scaled - n_copies
        leftover = leftover / leftover.sum()
        extra = rng.choice(N, size=n_left, replace=True, p=leftover)
        indices = np.concatenate([indices, extra])

    return indices.astype(int)


def effective_sample_size(weights: np.ndarray) -> float:
    """
    Effective sample size 1 / sum(w_i^2) of normalized weights.

    Args:
        weights: [N] Normalized weights

    Returns:
        ESS in [1, N]
    """
    return float(1.0 / np.sum(weights ** 2))


def normalize_log_weights(log_weights: np.ndarray) -> tuple:
    """
    Normalize unnormalized log-weights.

    Args:
        log_weights: [N] Unnormalized log-weights

    Returns:
        weights: [N] Normalized weights (sum to 1)
        log_normalizer: Log of the normalizing constant
    """
    log_norm = log_sum_exp(log_weights)
    weights = np.exp(np.asarray(log_weights, dtype=np.float64) - log_norm)
    return weights, log_norm


_INDEX_SCHEMES = {
    "systematic": systematic_resample,
    "stratified": stratified_resample,
    "multinomial": multinomial_resample,
    "residual": residual_resample,
}


class Resampler:
    """
    Swarm resampler.

    Called with the three parallel particle collections and returns a new,
    equally weighted triplet. Unnormalized log-weights are accepted; they
    are normalized here before drawing ancestors.
    """

    NEUTRAL_LOG_WEIGHT = 0.0

    def __init__(
        self,
        method: ResampleMethod = "multinomial",
        index_fn: Optional[Callable[[np.ndarray, Generator], np.ndarray]] = None,
    ):
        """
        Args:
            method: Named index scheme
            index_fn: Custom (weights, rng) -> indices scheme, overrides method
        """
        if index_fn is None:
            if method not in _INDEX_SCHEMES:
                raise ValueError(f"Unknown resample method: {method}")
            index_fn = _INDEX_SCHEMES[method]
        self.method = method
        self.index_fn = index_fn

    def ancestors(self, log_weights: np.ndarray, rng: Generator) -> np.ndarray:
        """Draw the ancestor index for every destination slot."""
        weights, _ = normalize_log_weights(log_weights)
        indices = np.asarray(self.index_fn(weights, rng), dtype=int)
        if indices.shape != (len(weights),):
            raise ValueError(
                f"Resampling scheme returned {indices.shape} indices, "
                f"expected ({len(weights)},)"
            )
        return indices

    def __call__(
        self,
        inner_filters: List,
        samples: np.ndarray,
        log_weights: np.ndarray,
        rng: Generator,
    ) -> Tuple[List, np.ndarray, np.ndarray]:
        """
        Resample a swarm.

        Args:
            inner_filters: [N] Closed-form filters
            samples: [N, d_s] Sampled-state values
            log_weights: [N] Unnormalized log-weights
            rng: NumPy random generator

        Returns:
            inner_filters: [N] Fresh copies of the selected filters
            samples: [N, d_s] Selected samples
            log_weights: [N] Neutral log-weights
        """
        indices = self.ancestors(log_weights, rng)
        logger.debug(
            "Resampled %d particles, %d distinct ancestors",
            len(indices), len(np.unique(indices)),
        )

        new_filters = [inner_filters[i].copy() for i in indices]
        new_samples = np.asarray(samples)[indices].copy()
        new_log_weights = np.full(len(indices), self.NEUTRAL_LOG_WEIGHT)
        return new_filters, new_samples, new_log_weights
