"""
Measurement models for landmark-based localization.

Reference implementations of the ``MeasurementModel`` and
``FeatureMeasurementModel`` capabilities.

Range-Bearing Sensor:
    With δ = m - p = [δx, δy]ᵀ and q = δᵀδ,
        z = [√q, atan2(δy, δx) - θ]ᵀ

    Jacobians:
        ∂h/∂x = [[-δx/√q, -δy/√q,  0],
                 [ δy/q,  -δx/q,  -1]]
        ∂h/∂m = [[ δx/√q,  δy/√q],
                 [-δy/q,   δx/q ]]

    Inverse observation:
        m = p + r [cos(θ + φ), sin(θ + φ)]ᵀ

Relative Position Sensor:
    z = m - p, linear in both pose and landmark.
"""

import numpy as np
from typing import Optional, Sequence

from .motion import normalize_angle


class LinearMeasurementModel:
    """Direct linear observation z = H x, independent of any landmark."""

    def __init__(self, H: np.ndarray):
        self.H = np.atleast_2d(np.asarray(H, dtype=float))

    def predict(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        return self.H @ np.asarray(state, dtype=float)

    def jacobian(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        return self.H.copy()


class RelativePositionModel:
    """
    Landmark position expressed relative to the robot, z = m - p.

    Attributes:
        state_indices: Indices of the position components inside the state
    """

    def __init__(self, state_dim: int = 3, state_indices: Sequence[int] = (0, 1)):
        self.state_dim = state_dim
        self.state_indices = np.asarray(state_indices, dtype=int)
        if np.any(self.state_indices >= state_dim) or np.any(self.state_indices < 0):
            raise ValueError(f"Position indices {list(state_indices)} out of range for state of size {state_dim}")

    def _require_landmark(self, landmark: Optional[np.ndarray]) -> np.ndarray:
        if landmark is None:
            raise ValueError("Relative position measurements require a landmark")
        return np.asarray(landmark, dtype=float)

    def predict(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        landmark = self._require_landmark(landmark)
        return landmark - np.asarray(state, dtype=float)[self.state_indices]

    def jacobian(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        H = np.zeros((len(self.state_indices), self.state_dim))
        H[np.arange(len(self.state_indices)), self.state_indices] = -1.0
        return H

    def jacobian_wrt_landmark(self, state: np.ndarray, landmark: np.ndarray) -> np.ndarray:
        return np.eye(len(self.state_indices))

    def inverse(self, state: np.ndarray, observation: np.ndarray) -> np.ndarray:
        return np.asarray(state, dtype=float)[self.state_indices] + np.asarray(observation, dtype=float)


class RangeBearingModel:
    """
    Range and bearing to a 2-D point landmark from a planar pose [px, py, θ].

    Raises ``ValueError`` from the Jacobians when the landmark coincides with
    the robot position, where the bearing is undefined.
    """

    def __init__(self, min_range: float = 1e-9):
        self._min_range = min_range

    def _offset(self, state: np.ndarray, landmark: Optional[np.ndarray]):
        if landmark is None:
            raise ValueError("Range-bearing measurements require a landmark")
        state = np.asarray(state, dtype=float)
        delta = np.asarray(landmark, dtype=float)[:2] - state[:2]
        q = float(delta @ delta)
        return state, delta, q

    def predict(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        state, delta, q = self._offset(state, landmark)
        bearing = normalize_angle(np.arctan2(delta[1], delta[0]) - state[2])
        return np.array([np.sqrt(q), bearing])

    def jacobian(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        _, (dx, dy), q = self._offset(state, landmark)
        r = np.sqrt(q)
        if r < self._min_range:
            raise ValueError("Landmark coincides with robot position, bearing is undefined")
        return np.array([[-dx / r, -dy / r, 0.0],
                         [dy / q, -dx / q, -1.0]])

    def jacobian_wrt_landmark(self, state: np.ndarray, landmark: np.ndarray) -> np.ndarray:
        _, (dx, dy), q = self._offset(state, landmark)
        r = np.sqrt(q)
        if r < self._min_range:
            raise ValueError("Landmark coincides with robot position, bearing is undefined")
        return np.array([[dx / r, dy / r],
                         [-dy / q, dx / q]])

    def inverse(self, state: np.ndarray, observation: np.ndarray) -> np.ndarray:
        px, py, theta = np.asarray(state, dtype=float)
        r, bearing = np.asarray(observation, dtype=float)
        return np.array([px + r * np.cos(theta + bearing),
                         py + r * np.sin(theta + bearing)])

    def residual(self, observation: np.ndarray, predicted: np.ndarray) -> np.ndarray:
        """Innovation with the bearing wrapped into [-π, π)."""
        diff = np.asarray(observation, dtype=float) - np.asarray(predicted, dtype=float)
        diff[1] = normalize_angle(diff[1])
        return diff
