"""
Filtering algorithms.
"""

from .base import ParticleSwarm, RBPFResult
from .closed_form import GaussianMoments, HMMFilter, KalmanFilter
from .rbpf import RaoBlackwellizedParticleFilter

__all__ = [
    "ParticleSwarm",
    "RBPFResult",
    "GaussianMoments",
    "HMMFilter",
    "KalmanFilter",
    "RaoBlackwellizedParticleFilter",
]
