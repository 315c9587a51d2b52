"""
Extended Kalman Filter for Mobile Robot Pose Estimation

The EKF represents the belief as a single Gaussian N(x, P) and handles
nonlinear motion and measurement models by linearising them around the
current estimate.

State Space Model:
    x(k) = f(x(k-1), u(k), dt) + w(k),   w ~ N(0, R)
    z(k) = h(x(k), m) + v(k),            v ~ N(0, Q)

EKF Recursion:
    Prediction:
        G = ∂f/∂x |x(k-1)
        x̂⁻ = f(x̂(k-1), u(k), dt)
        P⁻ = G P(k-1) Gᵀ + R

    Correction (one per measurement, folded sequentially):
        H = ∂h/∂x |x̂⁻
        S = H P⁻ Hᵀ + Q
        K = P⁻ Hᵀ S⁻¹
        x̂ = x̂⁻ + K (z - h(x̂⁻, m))
        P = (I - K H) P⁻

With linear models the recursion reduces exactly to the linear Kalman filter.

The known-correspondence variant looks up the landmark m of each tagged
measurement in a fixed table and applies one correction per landmark. This
is the naive sequential update, not a joint multi-landmark solve.

Numerical Failure:
    A singular or numerically singular innovation covariance S raises
    ``SingularInnovationError``. All computations happen on local copies and
    the belief is only replaced once the whole step succeeded, so a failed
    step leaves the prior estimate intact.

Authors: Scientific Computing Team
License: MIT
"""

import logging
import numpy as np
from typing import Mapping, Optional, Sequence, Tuple

from ..exceptions import SingularInnovationError
from ..models.base import MeasurementModel, MotionModel, innovation
from ..utils.state import GaussianState
from .base import (BayesianFilter, BayesianFilterKnownCorrespondences, Measurement,
                   TaggedMeasurement, as_matrix, check_time_step, freeze_landmarks,
                   known_measurements)
from .diagnostics import FilterDiagnostics, assess_covariance, condition_number

logger = logging.getLogger(__name__)


class _ExtendedKalmanBase:
    """
    Shared EKF machinery: belief storage, prediction, correction, diagnostics.

    Attributes:
        R: Process noise covariance (S, S)
        Q: Measurement noise covariance (Z, Z)
        motion_model: Object implementing the MotionModel protocol
        measurement_model: Object implementing the MeasurementModel protocol
    """

    def __init__(self, R: np.ndarray, Q: np.ndarray,
                 measurement_model: MeasurementModel,
                 motion_model: MotionModel,
                 initial_state: GaussianState,
                 max_condition_number: float = 1e12,
                 divergence_threshold: float = 1e6):
        """
        Initialize Extended Kalman Filter.

        Args:
            R: Process noise covariance (S, S)
            Q: Measurement noise covariance (Z, Z)
            measurement_model: Measurement model h and its Jacobian
            motion_model: Motion model f and its Jacobian
            initial_state: Initial belief N(x₀, P₀)
            max_condition_number: κ(S) above which S is treated as singular
            divergence_threshold: Covariance trace reported as divergence

        Raises:
            ValueError: If matrix dimensions are inconsistent
        """
        if max_condition_number <= 1:
            raise ValueError(f"Maximum condition number must exceed 1, got {max_condition_number}")

        self.state_dim = initial_state.dim
        self.R = as_matrix(R, self.state_dim, "Process noise R")
        self.Q = np.atleast_2d(np.asarray(Q, dtype=float))
        self.measurement_dim = self.Q.shape[0]
        self.Q = as_matrix(self.Q, self.measurement_dim, "Measurement noise Q")

        self.measurement_model = measurement_model
        self.motion_model = motion_model

        self._max_condition_number = max_condition_number
        self._divergence_threshold = divergence_threshold

        self.reset(initial_state)
        logger.info(f"Extended Kalman Filter initialized (state_dim={self.state_dim}, "
                    f"measurement_dim={self.measurement_dim})")

    def reset(self, initial_state: GaussianState) -> None:
        """
        Reset filter to a new initial belief and clear statistics.

        Raises:
            ValueError: If the belief has the wrong dimension
        """
        if initial_state.dim != self.state_dim:
            raise ValueError(f"Initial state must have {self.state_dim} elements, got {initial_state.dim}")

        self._x = initial_state.mean.copy()
        self._P = initial_state.covariance.copy()

        self._prediction_count = 0
        self._update_count = 0
        self._innovation_history = []
        self._last_mahalanobis = 0.0

        logger.info("Extended Kalman Filter reset")

    def _predict(self, x: np.ndarray, P: np.ndarray, control: np.ndarray,
                 dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Prediction step: x̂⁻ = f(x̂, u), P⁻ = G P Gᵀ + R.
        """
        G = np.asarray(self.motion_model.jacobian_wrt_state(x, control, dt), dtype=float)
        x_pred = np.asarray(self.motion_model.predict(x, control, dt), dtype=float).reshape(-1)
        P_pred = G @ P @ G.T + self.R
        return x_pred, P_pred

    def _correct(self, x: np.ndarray, P: np.ndarray, z: np.ndarray,
                 landmark: Optional[np.ndarray]) -> Tuple[np.ndarray, np.ndarray, np.ndarray, float]:
        """
        Correction step for a single measurement.

        Returns:
            Updated mean, updated covariance, innovation ν and νᵀS⁻¹ν

        Raises:
            SingularInnovationError: If S cannot be safely inverted
            ValueError: If the measurement has the wrong dimension
        """
        z = np.asarray(z, dtype=float).reshape(-1)
        if z.shape[0] != self.measurement_dim:
            raise ValueError(f"Measurement must have {self.measurement_dim} elements, got {z.shape[0]}")

        H = np.atleast_2d(np.asarray(self.measurement_model.jacobian(x, landmark), dtype=float))
        z_pred = np.asarray(self.measurement_model.predict(x, landmark), dtype=float).reshape(-1)

        S = H @ P @ H.T + self.Q
        kappa = condition_number(S) if np.all(np.isfinite(S)) else float('inf')
        if not np.isfinite(kappa) or kappa > self._max_condition_number:
            logger.warning(f"Singular innovation covariance: κ={kappa:.2e}")
            raise SingularInnovationError(
                f"Innovation covariance is singular (condition number {kappa:.2e})", kappa)

        try:
            # K = P Hᵀ S⁻¹, computed as (S⁻¹ H P)ᵀ using the symmetry of S and P
            K = np.linalg.solve(S, H @ P).T
            nu = innovation(self.measurement_model, z, z_pred)
            mahalanobis = float(nu @ np.linalg.solve(S, nu))
        except np.linalg.LinAlgError as exc:
            logger.warning(f"Innovation covariance inversion failed: {exc}")
            raise SingularInnovationError(f"Innovation covariance inversion failed: {exc}", kappa) from exc

        x_est = x + K @ nu
        P_est = (np.eye(self.state_dim) - K @ H) @ P
        P_est = (P_est + P_est.T) * 0.5
        return x_est, P_est, nu, mahalanobis

    def _run_step(self, control: Optional[np.ndarray], corrections, dt: float) -> None:
        """
        Predict then fold every (landmark, z) correction, committing at the end.
        """
        check_time_step(dt)
        x, P = self._x.copy(), self._P.copy()
        predicted = control is not None
        if predicted:
            x, P = self._predict(x, P, np.asarray(control, dtype=float), dt)

        innovations = []
        mahalanobis = self._last_mahalanobis
        for landmark, z in corrections:
            x, P, nu, mahalanobis = self._correct(x, P, z, landmark)
            innovations.append(float(np.linalg.norm(nu)))

        self._x, self._P = x, P
        self._prediction_count += int(predicted)
        self._update_count += len(innovations)
        self._last_mahalanobis = mahalanobis
        self._innovation_history.extend(innovations)
        if len(self._innovation_history) > 100:
            del self._innovation_history[:-100]

        logger.debug(f"EKF step completed, dt={dt:.3f}s, corrections={len(innovations)}")

    def gaussian_estimate(self) -> GaussianState:
        return GaussianState(self._x.copy(), self._P.copy())

    def get_diagnostics(self) -> FilterDiagnostics:
        """
        Generate filter diagnostics.

        Returns:
            FilterDiagnostics object with current filter status
        """
        return FilterDiagnostics(
            filter_state=assess_covariance(self._P, self._update_count > 0,
                                           self._divergence_threshold,
                                           self._max_condition_number),
            prediction_count=self._prediction_count,
            update_count=self._update_count,
            covariance_trace=float(np.trace(self._P)),
            condition_number=condition_number(self._P),
            innovation_magnitude=self._innovation_history[-1] if self._innovation_history else 0.0,
            mahalanobis_distance=self._last_mahalanobis
        )


class ExtendedKalmanFilter(_ExtendedKalmanBase, BayesianFilter):
    """
    Extended Kalman Filter for measurements that do not reference a landmark.

    Each measurement in a batch is folded in sequentially with ``landmark=None``.

    Example:
        >>> ekf = ExtendedKalmanFilter(R, Q, measurement_model, motion_model,
        ...                            GaussianState(x0, P0))
        >>> ekf.update_estimate(u, [z], dt=0.1)
        >>> belief = ekf.gaussian_estimate()
    """

    def update_estimate(self, control: Optional[np.ndarray],
                        measurements: Optional[Sequence[Measurement]],
                        dt: float) -> None:
        corrections = [(None, z) for z in ([] if measurements is None else list(measurements))]
        self._run_step(control, corrections, dt)


class ExtendedKalmanFilterKnownCorrespondences(_ExtendedKalmanBase, BayesianFilterKnownCorrespondences):
    """
    Extended Kalman Filter localizing against a known landmark map.

    Measurements whose identifier is absent from the landmark table are
    skipped without error.
    """

    def __init__(self, R: np.ndarray, Q: np.ndarray,
                 landmarks: Mapping[int, np.ndarray],
                 measurement_model: MeasurementModel,
                 motion_model: MotionModel,
                 initial_state: GaussianState,
                 max_condition_number: float = 1e12,
                 divergence_threshold: float = 1e6):
        """
        Initialize the known-correspondence EKF.

        Args:
            R: Process noise covariance (S, S)
            Q: Measurement noise covariance (Z, Z)
            landmarks: Landmark identifier -> landmark vector, copied and frozen
            measurement_model: Measurement model h(x, m) and its Jacobian
            motion_model: Motion model f and its Jacobian
            initial_state: Initial belief N(x₀, P₀)
            max_condition_number: κ(S) above which S is treated as singular
            divergence_threshold: Covariance trace reported as divergence
        """
        self.landmarks = freeze_landmarks(landmarks)
        super().__init__(R, Q, measurement_model, motion_model, initial_state,
                         max_condition_number, divergence_threshold)

    def update_estimate(self, control: Optional[np.ndarray],
                        measurements: Optional[Sequence[TaggedMeasurement]],
                        dt: float) -> None:
        corrections = known_measurements(measurements, self.landmarks)
        skipped = (0 if measurements is None else len(measurements)) - len(corrections)
        if skipped:
            logger.debug(f"Skipped {skipped} measurements of unknown landmarks")
        self._run_step(control, corrections, dt)
