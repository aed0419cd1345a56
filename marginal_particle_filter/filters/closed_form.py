"""
Closed-form filters embedded in each particle.

- HMMFilter: forward filter for a finite-state Markov chain
- KalmanFilter: Kalman filter for a conditionally linear Gaussian state

Both are conditioned on one particle's sampled history: the model's
`update_inner` hook passes in whatever quantities depend on the sampled
state (likelihood vector, transition matrix, system matrices) at each step.
"""

import copy
from typing import NamedTuple, Optional

import numpy as np
from scipy.linalg import cho_factor, cho_solve

from ..exceptions import InvalidDensityError


class GaussianMoments(NamedTuple):
    """Filtered mean and covariance of a Gaussian state."""
    mean: np.ndarray
    cov: np.ndarray


def _check_probability_vector(p: np.ndarray, name: str, atol: float = 1e-8):
    if np.any(p < 0) or not np.isclose(np.sum(p), 1.0, atol=atol):
        raise ValueError(f"{name} must be non-negative and sum to 1, got {p}")


class HMMFilter:
    """
    Forward filter for a discrete hidden Markov chain.

    The transition matrix is row-stochastic: element (i, j) is
    P(x_t = j | x_{t-1} = i).
    """

    def __init__(self, initial_probs: np.ndarray, transition_matrix: np.ndarray):
        """
        Args:
            initial_probs: [K] Distribution of the state at time 1
            transition_matrix: [K, K] Row-stochastic transition matrix
        """
        initial_probs = np.asarray(initial_probs, dtype=np.float64).ravel()
        _check_probability_vector(initial_probs, "initial_probs")

        self.filter_vec = initial_probs.copy()
        self.transition_matrix = self._validated_transition(
            transition_matrix, initial_probs.shape[0]
        )
        self.log_cond_like = 0.0
        self._fresh = True

    @staticmethod
    def _validated_transition(transition_matrix: np.ndarray, K: int) -> np.ndarray:
        P = np.asarray(transition_matrix, dtype=np.float64)
        if P.shape != (K, K):
            raise ValueError(f"transition_matrix must be ({K}, {K}), got {P.shape}")
        for i in range(K):
            _check_probability_vector(P[i], f"transition_matrix row {i}")
        return P

    @property
    def n_states(self) -> int:
        return self.filter_vec.shape[0]

    @property
    def filter_summary(self) -> np.ndarray:
        """[K] Filtered probabilities P(x_t = k | y_{1:t})."""
        return self.filter_vec.copy()

    def predict(self) -> np.ndarray:
        """One-step predictive distribution of the next state."""
        if self._fresh:
            return self.filter_vec.copy()
        return self.transition_matrix.T @ self.filter_vec

    def update(
        self,
        log_cond_dens: np.ndarray,
        transition_matrix: Optional[np.ndarray] = None,
    ):
        """
        Incorporate one observation.

        Args:
            log_cond_dens: [K] log p(y_t | x_t = k, sampled state)
            transition_matrix: Optional [K, K] replacement transition matrix,
                applied before the prediction step

        Raises:
            InvalidDensityError: An entry of log_cond_dens is NaN or +inf
        """
        log_cond_dens = np.asarray(log_cond_dens, dtype=np.float64).ravel()
        if log_cond_dens.shape != (self.n_states,):
            raise ValueError(
                f"log_cond_dens must have shape ({self.n_states},), "
                f"got {log_cond_dens.shape}"
            )
        if np.any(np.isnan(log_cond_dens)) or np.any(log_cond_dens == np.inf):
            raise InvalidDensityError(
                f"log_cond_dens must be finite or -inf, got {log_cond_dens}"
            )
        if transition_matrix is not None:
            self.transition_matrix = self._validated_transition(
                transition_matrix, self.n_states
            )

        pred = self.predict()

        m = np.max(log_cond_dens)
        if m == -np.inf:
            # Observation impossible under every state
            self.filter_vec = pred
            self.log_cond_like = -np.inf
        else:
            joint = pred * np.exp(log_cond_dens - m)
            total = np.sum(joint)
            if total > 0.0:
                self.filter_vec = joint / total
                self.log_cond_like = float(m + np.log(total))
            else:
                self.filter_vec = pred
                self.log_cond_like = -np.inf

        self._fresh = False

    def copy(self) -> "HMMFilter":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"HMMFilter(K={self.n_states})"


class KalmanFilter:
    """
    Kalman filter for a conditionally linear Gaussian state.

    Dynamics:    x_t = A @ x_{t-1} + b + v_t,  v_t ~ N(0, Q)
    Observation: y_t = H @ x_t + d + w_t,      w_t ~ N(0, R)

    The initial moments describe x_1 before y_1 is seen, so the first
    update is a pure correction step.
    """

    def __init__(self, initial_mean: np.ndarray, initial_cov: np.ndarray):
        """
        Args:
            initial_mean: [nx] Mean of x_1
            initial_cov: [nx, nx] Covariance of x_1
        """
        m0 = np.asarray(initial_mean, dtype=np.float64).ravel()
        P0 = np.atleast_2d(np.asarray(initial_cov, dtype=np.float64))
        nx = m0.shape[0]
        if P0.shape != (nx, nx):
            raise ValueError(f"initial_cov must be ({nx}, {nx}), got {P0.shape}")

        self.mean = m0
        self.cov = 0.5 * (P0 + P0.T)
        self.log_cond_like = 0.0
        self._fresh = True

    @property
    def state_dim(self) -> int:
        return self.mean.shape[0]

    @property
    def filter_summary(self) -> GaussianMoments:
        """Filtered moments of x_t given y_{1:t}."""
        return GaussianMoments(self.mean.copy(), self.cov.copy())

    def predict(
        self,
        A: Optional[np.ndarray] = None,
        Q: Optional[np.ndarray] = None,
        b: Optional[np.ndarray] = None,
    ) -> tuple:
        """
        Prediction step.

        Args:
            A: [nx, nx] Transition matrix (identity if None)
            Q: [nx, nx] Process noise covariance (zero if None)
            b: [nx] Transition offset (zero if None)

        Returns:
            m_pred: [nx] Predicted mean
            P_pred: [nx, nx] Predicted covariance
        """
        nx = self.state_dim
        A = np.eye(nx) if A is None else np.atleast_2d(A)
        m_pred = A @ self.mean
        if b is not None:
            m_pred = m_pred + np.asarray(b, dtype=np.float64).ravel()

        P_pred = A @ self.cov @ A.T
        if Q is not None:
            P_pred = P_pred + np.atleast_2d(Q)
        P_pred = 0.5 * (P_pred + P_pred.T)
        return m_pred, P_pred

    def update(
        self,
        y: np.ndarray,
        H: np.ndarray,
        R: np.ndarray,
        A: Optional[np.ndarray] = None,
        Q: Optional[np.ndarray] = None,
        b: Optional[np.ndarray] = None,
        d: Optional[np.ndarray] = None,
    ):
        """
        Incorporate one observation (predict, then correct).

        Args:
            y: [ny] Observation
            H: [ny, nx] Observation matrix
            R: [ny, ny] Observation noise covariance
            A, Q, b: Dynamics, ignored on the first update
            d: [ny] Observation offset (zero if None)
        """
        if self._fresh:
            m_pred, P_pred = self.mean, self.cov
        else:
            m_pred, P_pred = self.predict(A, Q, b)

        y = np.asarray(y, dtype=np.float64).ravel()
        H = np.atleast_2d(np.asarray(H, dtype=np.float64))
        R = np.atleast_2d(np.asarray(R, dtype=np.float64))
        ny = y.shape[0]

        # Innovation
        y_pred = H @ m_pred
        if d is not None:
            y_pred = y_pred + np.asarray(d, dtype=np.float64).ravel()
        v = y - y_pred

        S = H @ P_pred @ H.T + R
        S = 0.5 * (S + S.T)
        S_cho = cho_factor(S, lower=True)

        # Kalman gain K = P_pred H^T S^{-1}
        K = cho_solve(S_cho, H @ P_pred).T

        self.mean = m_pred + K @ v

        # Joseph form
        IKH = np.eye(self.state_dim) - K @ H
        P_upd = IKH @ P_pred @ IKH.T + K @ R @ K.T
        self.cov = 0.5 * (P_upd + P_upd.T)

        S_logdet = 2.0 * np.sum(np.log(np.diag(S_cho[0])))
        mahal_sq = float(v @ cho_solve(S_cho, v))
        self.log_cond_like = float(-0.5 * (ny * np.log(2 * np.pi) + S_logdet + mahal_sq))

        self._fresh = False

    def copy(self) -> "KalmanFilter":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"KalmanFilter(nx={self.state_dim})"
