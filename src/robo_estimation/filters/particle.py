"""
Particle Filter (Monte Carlo Localization)

The belief is represented by N pose hypotheses (particles). One step of the
filter is Sequential Importance Resampling:

    Prediction (control present):
        pᵢ ← f(pᵢ, u, dt) + εᵢ,   εᵢ ~ N(0, R) independently per particle

    Weighting (measurements present):
        wᵢ = Π_k N(z_k - h(pᵢ, m_k); 0, Q)

    Resampling:
        Replace the whole set by N draws proportional to wᵢ, using the
        scheme chosen at construction.

Resampling is triggered whenever at least one measurement contributed a
likelihood; there is no effective-sample-size threshold. Weights exist only
within one update: after resampling every particle is equally weighted, so
they are never carried across steps.

Weights are accumulated as log-likelihoods and shifted by their maximum
before exponentiation. This leaves the normalised weights unchanged while
preventing the product of many small densities from underflowing to zero.

The known-correspondence variant only scores measurements whose identifier
is present in its landmark table; the others are silently ignored, so a batch
made only of unknown identifiers behaves exactly like an empty batch.
"""

import logging
import numpy as np
from typing import Mapping, Optional, Sequence, Union

from ..exceptions import ResamplingError
from ..models.base import MeasurementModel, MotionModel, innovation
from ..utils.mvn import MultivariateNormal
from ..utils.state import GaussianState, gaussian_estimate
from .base import (BayesianFilter, BayesianFilterKnownCorrespondences, Measurement,
                   ParticleBasedFilter, TaggedMeasurement, as_matrix, check_time_step,
                   freeze_landmarks, known_measurements)
from .diagnostics import (FilterDiagnostics, FilterState, assess_covariance,
                          condition_number, effective_sample_size)
from .resampling import ResamplingScheme, resample

logger = logging.getLogger(__name__)


def normalized_weights(log_weights: np.ndarray) -> np.ndarray:
    """
    Convert accumulated log-likelihoods to weights with maximum 1.

    Raises:
        ResamplingError: If every particle has zero likelihood
    """
    log_weights = np.asarray(log_weights, dtype=float)
    if np.all(np.isneginf(log_weights)):
        raise ResamplingError("Every particle has zero likelihood under the measurements")
    return np.exp(log_weights - np.max(log_weights))


class _ParticleFilterBase(ParticleBasedFilter):
    """
    Shared particle machinery: initialization, prediction, weighting, resampling.

    Attributes:
        R: Process noise covariance (S, S)
        Q: Measurement noise covariance (Z, Z)
        resampling_scheme: Scheme used for every resampling pass
    """

    def __init__(self, R: np.ndarray, Q: np.ndarray,
                 measurement_model: MeasurementModel,
                 motion_model: MotionModel,
                 initial_state: GaussianState,
                 num_particles: int,
                 resampling_scheme: Union[str, ResamplingScheme] = ResamplingScheme.SYSTEMATIC,
                 rng: Optional[np.random.Generator] = None,
                 initial_noise: Optional[np.ndarray] = None,
                 degeneracy_threshold: float = 0.1):
        """
        Initialize the particle filter.

        Particles are drawn from N(initial_state.mean, initial_noise), where
        the spread defaults to the process noise R.

        Args:
            R: Process noise covariance (S, S)
            Q: Measurement noise covariance (Z, Z)
            measurement_model: Measurement model h(x, m)
            motion_model: Motion model f(x, u, dt)
            initial_state: Initial belief; only its mean is used
            num_particles: Number of particles N
            resampling_scheme: Resampling scheme
            rng: Random generator; defaults to a fresh one
            initial_noise: Covariance of the initial particle spread
            degeneracy_threshold: N_eff / N below which the filter reports DEGENERATE

        Raises:
            ValueError: If num_particles < 1 or matrix dimensions are inconsistent
            DistributionError: If R, Q or initial_noise is not positive definite
        """
        if int(num_particles) != num_particles or num_particles < 1:
            raise ValueError(f"Number of particles must be a positive integer, got {num_particles}")
        if not 0.0 <= degeneracy_threshold <= 1.0:
            raise ValueError(f"Degeneracy threshold must be in [0, 1], got {degeneracy_threshold}")

        self.state_dim = initial_state.dim
        self.R = as_matrix(R, self.state_dim, "Process noise R")
        self.Q = np.atleast_2d(np.asarray(Q, dtype=float))
        self.measurement_dim = self.Q.shape[0]
        self.Q = as_matrix(self.Q, self.measurement_dim, "Measurement noise Q")

        self.measurement_model = measurement_model
        self.motion_model = motion_model
        self.resampling_scheme = ResamplingScheme.parse(resampling_scheme)
        self._rng = rng if rng is not None else np.random.default_rng()
        self._degeneracy_threshold = degeneracy_threshold

        # Noise distributions are fixed for the lifetime of the filter
        self._process_noise = MultivariateNormal(np.zeros(self.state_dim), self.R, self._rng)
        self._measurement_noise = MultivariateNormal(np.zeros(self.measurement_dim), self.Q, self._rng)

        spread = self.R if initial_noise is None else as_matrix(initial_noise, self.state_dim, "Initial noise")
        self._particles = MultivariateNormal(initial_state.mean, spread, self._rng).sample(int(num_particles))

        self._prediction_count = 0
        self._update_count = 0
        self._last_ess = None

        logger.info(f"{type(self).__name__} initialized with {self.num_particles} particles "
                    f"({self.resampling_scheme.value} resampling)")

    def _predict_particles(self, particles: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        """Propagate every particle through f and add independent process noise."""
        predicted = np.array([self.motion_model.predict(p, control, dt) for p in particles], dtype=float)
        return predicted.reshape(particles.shape) + self._process_noise.sample(particles.shape[0])

    def _log_likelihoods(self, particles: np.ndarray, corrections) -> np.ndarray:
        """Σ_k log N(z_k - h(pᵢ, m_k); 0, Q) for every particle."""
        log_weights = np.zeros(particles.shape[0])
        for landmark, z in corrections:
            z = np.asarray(z, dtype=float).reshape(-1)
            if z.shape[0] != self.measurement_dim:
                raise ValueError(f"Measurement must have {self.measurement_dim} elements, got {z.shape[0]}")
            residuals = np.array([
                innovation(self.measurement_model, z, self.measurement_model.predict(p, landmark))
                for p in particles
            ], dtype=float).reshape(-1, self.measurement_dim)
            log_weights += self._measurement_noise.logpdf(residuals)
        return log_weights

    def _run_step(self, control: Optional[np.ndarray], corrections, dt: float) -> None:
        """
        Predict, weight and resample, replacing the particle set only on success.
        """
        check_time_step(dt)
        particles = self._particles
        predicted = control is not None
        if predicted:
            particles = self._predict_particles(particles, np.asarray(control, dtype=float), dt)

        ess = self._last_ess
        if corrections:
            try:
                weights = normalized_weights(self._log_likelihoods(particles, corrections))
                ess = effective_sample_size(weights)
                particles = resample(particles, weights, self.resampling_scheme, self._rng)
            except ResamplingError as exc:
                logger.warning(f"Particle weighting failed: {exc}")
                raise

        self._particles = particles
        self._prediction_count += int(predicted)
        self._update_count += int(bool(corrections))
        self._last_ess = ess

        logger.debug(f"Particle filter step completed, dt={dt:.3f}s, corrections={len(corrections)}")

    def _poses(self) -> np.ndarray:
        """(N, S) array of particle poses."""
        return self._particles

    def gaussian_estimate(self) -> GaussianState:
        """Empirical mean and biased covariance of the particle poses."""
        return gaussian_estimate(self._poses())

    def get_diagnostics(self) -> FilterDiagnostics:
        covariance = gaussian_estimate(self._poses()).covariance
        state = assess_covariance(covariance, self._update_count > 0)
        if (self._last_ess is not None and state is not FilterState.DIVERGING
                and self._last_ess < self._degeneracy_threshold * self.num_particles):
            state = FilterState.DEGENERATE

        return FilterDiagnostics(
            filter_state=state,
            prediction_count=self._prediction_count,
            update_count=self._update_count,
            covariance_trace=float(np.trace(covariance)),
            condition_number=condition_number(covariance),
            effective_sample_size=self._last_ess
        )


class ParticleFilter(_ParticleFilterBase, BayesianFilter):
    """
    Monte Carlo Localization with untagged measurements.

    Each measurement is scored against h(pᵢ, None).

    Example:
        >>> pf = ParticleFilter(R, Q, measurement_model, motion_model,
        ...                     GaussianState(x0, P0), num_particles=500,
        ...                     resampling_scheme="systematic",
        ...                     rng=np.random.default_rng(0))
        >>> pf.update_estimate(u, [z], dt=0.1)
        >>> belief = pf.gaussian_estimate()
    """

    def update_estimate(self, control: Optional[np.ndarray],
                        measurements: Optional[Sequence[Measurement]],
                        dt: float) -> None:
        corrections = [(None, z) for z in ([] if measurements is None else list(measurements))]
        self._run_step(control, corrections, dt)


class ParticleFilterKnownCorrespondences(_ParticleFilterBase, BayesianFilterKnownCorrespondences):
    """
    Monte Carlo Localization against a known landmark map.

    Only measurements whose identifier appears in the landmark table
    contribute weight; unknown identifiers are skipped without error.
    """

    def __init__(self, R: np.ndarray, Q: np.ndarray,
                 landmarks: Mapping[int, np.ndarray],
                 measurement_model: MeasurementModel,
                 motion_model: MotionModel,
                 initial_state: GaussianState,
                 num_particles: int,
                 resampling_scheme: Union[str, ResamplingScheme] = ResamplingScheme.SYSTEMATIC,
                 rng: Optional[np.random.Generator] = None,
                 initial_noise: Optional[np.ndarray] = None,
                 degeneracy_threshold: float = 0.1):
        self.landmarks = freeze_landmarks(landmarks)
        super().__init__(R, Q, measurement_model, motion_model, initial_state, num_particles,
                         resampling_scheme, rng, initial_noise, degeneracy_threshold)

    def update_estimate(self, control: Optional[np.ndarray],
                        measurements: Optional[Sequence[TaggedMeasurement]],
                        dt: float) -> None:
        corrections = known_measurements(measurements, self.landmarks)
        skipped = (0 if measurements is None else len(measurements)) - len(corrections)
        if skipped:
            logger.debug(f"Skipped {skipped} measurements of unknown landmarks")
        self._run_step(control, corrections, dt)
