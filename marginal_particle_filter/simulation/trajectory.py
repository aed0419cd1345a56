"""
Trajectory simulation and storage.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Dict, Any
from numpy.random import Generator, default_rng

from ..models.base import ConditionalModel


@dataclass
class Trajectory:
    """
    Container for simulated or recorded trajectory data.

    Attributes:
        tractable_states: [T, ...] Path of the closed-form component x1
            (regime indices for HMM models, [T, nx] for Kalman models)
        sampled_states: [T, d_s] Path of the sampled component x2
        observations: [T, ny] Observations (y_1, y_2, ..., y_T)
        metadata: Optional dictionary for additional info
    """
    tractable_states: np.ndarray
    sampled_states: np.ndarray
    observations: np.ndarray
    metadata: Optional[Dict[str, Any]] = None

    @property
    def T(self) -> int:
        """Number of time steps."""
        return self.observations.shape[0]

    @property
    def sampled_dim(self) -> int:
        return self.sampled_states.shape[1]

    @property
    def obs_dim(self) -> int:
        return self.observations.shape[1]

    def subset(self, start: int, end: int) -> "Trajectory":
        """
        Extract time steps [start, end).

        Args:
            start: Start time index (inclusive)
            end: End time index (exclusive)

        Returns:
            New Trajectory with subset of data
        """
        return Trajectory(
            tractable_states=self.tractable_states[start:end].copy(),
            sampled_states=self.sampled_states[start:end].copy(),
            observations=self.observations[start:end].copy(),
            metadata=self.metadata,
        )

    def save(self, path: str):
        """Save trajectory to .npz file."""
        np.savez(
            path,
            tractable_states=self.tractable_states,
            sampled_states=self.sampled_states,
            observations=self.observations,
            metadata=self.metadata,
        )

    @classmethod
    def load(cls, path: str) -> "Trajectory":
        """Load trajectory from .npz file."""
        with np.load(path, allow_pickle=True) as data:
            metadata = data['metadata'].item() if 'metadata' in data else None
            return cls(
                tractable_states=data['tractable_states'],
                sampled_states=data['sampled_states'],
                observations=data['observations'],
                metadata=metadata,
            )


def simulate(
    model: ConditionalModel,
    T: int,
    seed: Optional[int] = None,
    rng: Optional[Generator] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Trajectory:
    """
    Simulate a trajectory from a conditional model.

    Args:
        model: ConditionalModel with a simulator
        T: Number of time steps
        seed: Random seed (ignored if rng is provided)
        rng: NumPy random generator (optional)
        metadata: Optional metadata to attach

    Returns:
        Trajectory object
    """
    if rng is None:
        rng = default_rng(seed)

    tractable_states, sampled_states, observations = model.simulate(T, rng)

    return Trajectory(
        tractable_states=np.asarray(tractable_states),
        sampled_states=np.asarray(sampled_states, dtype=np.float64).reshape(T, -1),
        observations=np.asarray(observations, dtype=np.float64).reshape(T, -1),
        metadata=metadata,
    )


def simulate_batch(
    model: ConditionalModel,
    T: int,
    n_trajectories: int,
    seed: Optional[int] = None,
) -> list:
    """
    Simulate multiple independent trajectories.

    Args:
        model: ConditionalModel with a simulator
        T: Number of time steps
        n_trajectories: Number of trajectories to simulate
        seed: Random seed

    Returns:
        List of Trajectory objects
    """
    rng = default_rng(seed)
    return [
        simulate(model, T, rng=rng, metadata={'trajectory_idx': i})
        for i in range(n_trajectories)
    ]
