"""
Particle swarm record and result container.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ParticleSwarm:
    """
    Fixed-size population of Rao-Blackwellized particles.

    Index i of every field describes the same particle: inner_filters[i] has
    been conditioned on the history that ended in samples[i], and
    log_weights[i] is that particle's unnormalized log importance weight.

    Attributes:
        samples: [N, d_s] Sampled-state values at the current time
        inner_filters: [N] Closed-form filters for the tractable state
        log_weights: [N] Unnormalized log-weights
    """
    samples: np.ndarray
    inner_filters: List
    log_weights: np.ndarray

    def __post_init__(self):
        n = self.log_weights.shape[0]
        if self.samples.shape[0] != n or len(self.inner_filters) != n:
            raise ValueError(
                f"Swarm fields disagree on size: samples={self.samples.shape[0]}, "
                f"inner_filters={len(self.inner_filters)}, log_weights={n}"
            )

    @property
    def n_particles(self) -> int:
        return self.log_weights.shape[0]

    def copy(self) -> "ParticleSwarm":
        """Independent copy (inner filters are copied too)."""
        return ParticleSwarm(
            samples=self.samples.copy(),
            inner_filters=[f.copy() for f in self.inner_filters],
            log_weights=self.log_weights.copy(),
        )


@dataclass
class RBPFResult:
    """
    Outputs of a batch run over T observations.

    Attributes:
        log_likelihood_increments: [T] log p(y_t | y_{1:t-1}) per step
        log_likelihood: Total log marginal likelihood log p(y_{1:T})
        expectations: One array [T, *shape] per expectation function
        ess: [T] Effective sample size before any resampling at each step
        resampled: [T] Boolean mask of resampling events
    """
    log_likelihood_increments: np.ndarray
    log_likelihood: float
    expectations: List[np.ndarray] = field(default_factory=list)
    ess: Optional[np.ndarray] = None
    resampled: Optional[np.ndarray] = None

    @property
    def T(self) -> int:
        """Number of time steps (observations)."""
        return self.log_likelihood_increments.shape[0]

    def average_ess(self) -> float:
        """Return average ESS if available."""
        if self.ess is None:
            return np.nan
        return float(np.mean(self.ess))

    def n_resampled(self) -> int:
        """Number of steps at which the swarm was resampled."""
        if self.resampled is None:
            return 0
        return int(np.sum(self.resampled))
