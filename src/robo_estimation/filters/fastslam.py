"""
FastSLAM 1.0: particle filter with per-particle landmark maps.

Each particle carries a pose hypothesis and its own map of independent
landmark estimates. Conditioned on the particle's path, landmarks are
independent, so every feature is tracked by a small EKF of its own.

Per step, for every particle independently:

    1. Pose sampling (control present):
           p ← f(p, u, dt) + ε, ε ~ N(0, R)
       or, with ``use_model_sampling``, the motion model's own sampler
           p ← sample(p, u, dt)

    2. For each tagged observation (j, z):
       first sighting of j:
           μ = h⁻¹(p, z)
           H_m = ∂h/∂m |μ
           Σ = H_m⁻¹ Q H_m⁻ᵀ
           weight ×= new_feature_weight
       re-sighting of j:
           ν = z - h(p, μ)
           S = H_m Σ H_mᵀ + Q
           K = Σ H_mᵀ S⁻¹
           μ ← μ + K ν
           Σ ← (I - K H_m) Σ
           weight ×= N(ν; 0, S)
       and the feature's existence log-odds grow by ``log_odds_hit``.

    3. Resample the particles (with their maps) in proportion to the
       accumulated weights whenever measurements were supplied.

Landmark identity is assumed to be known: the identifier of every
observation names the feature it belongs to.
"""

import logging
import numpy as np
from typing import Dict, List, Optional, Sequence, Union

from ..exceptions import ResamplingError, SingularInnovationError
from ..models.base import (FeatureMeasurementModel, MotionModel, StochasticMotionModel,
                           innovation)
from ..utils.mvn import MultivariateNormal
from ..utils.state import Feature, GaussianState
from .base import BayesianFilterKnownCorrespondences, TaggedMeasurement, check_time_step
from .diagnostics import condition_number, effective_sample_size
from .particle import _ParticleFilterBase, normalized_weights
from .resampling import ResamplingScheme, resample

logger = logging.getLogger(__name__)


class FastParticle:
    """
    Pose hypothesis with its own landmark map.

    Attributes:
        pose: Pose vector (S,)
        features: Landmark identifier -> Feature estimate
    """

    def __init__(self, pose: np.ndarray, features: Optional[Dict[int, Feature]] = None):
        self.pose = np.array(pose, dtype=float).reshape(-1)
        self.features = features if features is not None else {}

    def copy(self) -> 'FastParticle':
        return FastParticle(self.pose.copy(),
                            {identifier: feature.copy() for identifier, feature in self.features.items()})

    def __repr__(self) -> str:
        return f"FastParticle(pose={np.round(self.pose, 3).tolist()}, features={len(self.features)})"


class FastSlam1(_ParticleFilterBase, BayesianFilterKnownCorrespondences):
    """
    FastSLAM 1.0 with EKF landmark estimation and known correspondences.

    Example:
        >>> slam = FastSlam1(R, Q, RangeBearingModel(), UnicycleMotionModel(),
        ...                  GaussianState(x0, P0), num_particles=100,
        ...                  rng=np.random.default_rng(0))
        >>> slam.update_estimate(u, [(3, z)], dt=0.1)
        >>> pose = slam.gaussian_estimate()
        >>> landmarks = slam.map_estimate()
    """

    def __init__(self, R: np.ndarray, Q: np.ndarray,
                 measurement_model: FeatureMeasurementModel,
                 motion_model: MotionModel,
                 initial_state: GaussianState,
                 num_particles: int,
                 resampling_scheme: Union[str, ResamplingScheme] = ResamplingScheme.SYSTEMATIC,
                 rng: Optional[np.random.Generator] = None,
                 initial_noise: Optional[np.ndarray] = None,
                 log_odds_hit: float = 1.0,
                 new_feature_weight: float = 1.0,
                 max_condition_number: float = 1e12,
                 degeneracy_threshold: float = 0.1,
                 use_model_sampling: bool = False):
        """
        Initialize FastSLAM.

        Args:
            R: Process noise covariance (S, S)
            Q: Measurement noise covariance (Z, Z)
            measurement_model: Model providing predict, jacobian_wrt_landmark and inverse
            motion_model: Motion model f and, for model sampling, its ``sample``
            initial_state: Initial pose belief; only its mean is used
            num_particles: Number of particles N
            resampling_scheme: Resampling scheme
            rng: Random generator; defaults to a fresh one
            initial_noise: Covariance of the initial pose spread, defaults to R
            log_odds_hit: Existence log-odds added each time a feature is observed
            new_feature_weight: Importance factor for observing a new feature
            max_condition_number: κ(S) above which S is treated as singular
            use_model_sampling: Draw poses with ``motion_model.sample`` instead of f + N(0, R)

        Raises:
            TypeError: If the measurement model cannot estimate landmarks, or model
                sampling is requested from a model without ``sample``
            ValueError: If a parameter is out of range
            DistributionError: If R, Q or initial_noise is not positive definite
        """
        if not isinstance(measurement_model, FeatureMeasurementModel):
            raise TypeError(f"{type(measurement_model).__name__} does not provide "
                            f"jacobian_wrt_landmark and inverse, required for mapping")
        if use_model_sampling and not isinstance(motion_model, StochasticMotionModel):
            raise TypeError(f"{type(motion_model).__name__} does not provide sample, "
                            f"required for use_model_sampling")
        if new_feature_weight <= 0:
            raise ValueError(f"New feature weight must be positive, got {new_feature_weight}")

        self.log_odds_hit = float(log_odds_hit)
        self.use_model_sampling = bool(use_model_sampling)
        self._log_new_feature_weight = float(np.log(new_feature_weight))
        self._max_condition_number = max_condition_number

        super().__init__(R, Q, measurement_model, motion_model, initial_state, num_particles,
                         resampling_scheme, rng, initial_noise, degeneracy_threshold)
        self._particles = [FastParticle(pose) for pose in self._particles]

    def _poses(self) -> np.ndarray:
        return np.array([particle.pose for particle in self._particles])

    def _sample_pose(self, pose: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        if self.use_model_sampling:
            sampled = self.motion_model.sample(pose, control, dt, self._rng)
            return np.asarray(sampled, dtype=float).reshape(-1)
        predicted = np.asarray(self.motion_model.predict(pose, control, dt), dtype=float).reshape(-1)
        return predicted + self._process_noise.sample()

    def _landmark_jacobian(self, pose: np.ndarray, landmark: np.ndarray) -> np.ndarray:
        """∂h/∂m at the landmark; an undefined Jacobian is a singular observation."""
        try:
            H = self.measurement_model.jacobian_wrt_landmark(pose, landmark)
        except ValueError as exc:
            logger.warning(f"Feature Jacobian undefined: {exc}")
            raise SingularInnovationError(f"Feature Jacobian undefined: {exc}") from exc
        return np.atleast_2d(np.asarray(H, dtype=float))

    def _initialize_feature(self, pose: np.ndarray, z: np.ndarray) -> Feature:
        """Place a new feature at the inverse observation with covariance H⁻¹ Q H⁻ᵀ."""
        mean = np.asarray(self.measurement_model.inverse(pose, z), dtype=float).reshape(-1)
        H = self._landmark_jacobian(pose, mean)

        if H.shape[0] == H.shape[1]:
            try:
                H_inv = np.linalg.inv(H)
            except np.linalg.LinAlgError as exc:
                logger.warning("Feature Jacobian is singular, cannot initialize landmark")
                raise SingularInnovationError(f"Feature Jacobian is singular: {exc}") from exc
        else:
            H_inv = np.linalg.pinv(H)

        covariance = H_inv @ self.Q @ H_inv.T
        return Feature(mean, (covariance + covariance.T) * 0.5, self.log_odds_hit)

    def _correct_feature(self, pose: np.ndarray, feature: Feature, z: np.ndarray) -> float:
        """
        EKF update of one feature in place.

        Returns:
            log N(ν; 0, S) evaluated before the update

        Raises:
            SingularInnovationError: If S cannot be safely inverted
        """
        z_pred = np.asarray(self.measurement_model.predict(pose, feature.mean), dtype=float).reshape(-1)
        H = self._landmark_jacobian(pose, feature.mean)

        S = H @ feature.covariance @ H.T + self.Q
        S = (S + S.T) * 0.5
        kappa = condition_number(S) if np.all(np.isfinite(S)) else float('inf')
        if not np.isfinite(kappa) or kappa > self._max_condition_number:
            logger.warning(f"Singular feature innovation covariance: κ={kappa:.2e}")
            raise SingularInnovationError(
                f"Feature innovation covariance is singular (condition number {kappa:.2e})", kappa)

        nu = innovation(self.measurement_model, z, z_pred)
        log_likelihood = MultivariateNormal(np.zeros(self.measurement_dim), S).logpdf(nu)

        K = np.linalg.solve(S, H @ feature.covariance).T
        feature.mean = feature.mean + K @ nu
        covariance = (np.eye(feature.mean.shape[0]) - K @ H) @ feature.covariance
        feature.covariance = (covariance + covariance.T) * 0.5
        feature.log_weight += self.log_odds_hit
        return log_likelihood

    def _update_particle(self, particle: FastParticle, control: Optional[np.ndarray],
                         measurements: List, dt: float) -> float:
        """Move one particle and fold every observation into its map; returns its log weight."""
        if control is not None:
            particle.pose = self._sample_pose(particle.pose, control, dt)

        log_weight = 0.0
        for identifier, z in measurements:
            feature = particle.features.get(identifier)
            if feature is None:
                particle.features[identifier] = self._initialize_feature(particle.pose, z)
                log_weight += self._log_new_feature_weight
            else:
                log_weight += self._correct_feature(particle.pose, feature, z)
        return log_weight

    def update_estimate(self, control: Optional[np.ndarray],
                        measurements: Optional[Sequence[TaggedMeasurement]],
                        dt: float) -> None:
        check_time_step(dt)
        control = None if control is None else np.asarray(control, dtype=float)
        observations = []
        for identifier, z in ([] if measurements is None else measurements):
            z = np.asarray(z, dtype=float).reshape(-1)
            if z.shape[0] != self.measurement_dim:
                raise ValueError(f"Measurement must have {self.measurement_dim} elements, got {z.shape[0]}")
            observations.append((int(identifier), z))

        if control is None and not observations:
            return

        # Work on copies so that a failure leaves the current particles untouched
        candidates = [particle.copy() for particle in self._particles]
        log_weights = np.array([
            self._update_particle(candidate, control, observations, dt) for candidate in candidates
        ])

        ess = self._last_ess
        if observations:
            try:
                weights = normalized_weights(log_weights)
                ess = effective_sample_size(weights)
                candidates = resample(candidates, weights, self.resampling_scheme, self._rng)
            except ResamplingError as exc:
                logger.warning(f"Particle weighting failed: {exc}")
                raise

        self._particles = candidates
        self._prediction_count += int(control is not None)
        self._update_count += int(bool(observations))
        self._last_ess = ess

        logger.debug(f"FastSLAM step completed, dt={dt:.3f}s, observations={len(observations)}")

    def map_estimate(self) -> Dict[int, GaussianState]:
        """
        Landmark estimates combined across particles.

        Each landmark is summarised by the moments of the mixture formed by
        the particles that carry it:
            μ̄ = mean(μᵢ),  Σ̄ = mean(Σᵢ) + mean((μᵢ - μ̄)(μᵢ - μ̄)ᵀ)

        Returns:
            Landmark identifier -> GaussianState, ordered by identifier
        """
        grouped: Dict[int, List[Feature]] = {}
        for particle in self._particles:
            for identifier, feature in particle.features.items():
                grouped.setdefault(identifier, []).append(feature)

        estimates = {}
        for identifier in sorted(grouped):
            means = np.array([feature.mean for feature in grouped[identifier]])
            mean = means.mean(axis=0)
            spread = (means - mean).T @ (means - mean) / len(means)
            covariance = np.mean([feature.covariance for feature in grouped[identifier]], axis=0) + spread
            estimates[identifier] = GaussianState(mean, covariance)
        return estimates
