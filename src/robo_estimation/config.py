"""
Validated parameter objects for building filters.

Parameters are plain dataclasses checked in ``__post_init__`` so that
invalid settings fail at construction rather than mid-run. ``from_dict``
builds them from flat mappings (e.g. parsed command-line options), ignoring
keys that do not belong to the dataclass.
"""

import numpy as np
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional, Sequence, Union

from .filters.resampling import ResamplingScheme


def _filter_fields(cls, mapping: Mapping[str, Any]) -> dict:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in mapping.items() if key in names}


def _check_covariance(matrix: np.ndarray, name: str) -> np.ndarray:
    matrix = np.atleast_2d(np.asarray(matrix, dtype=float))
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"{name} must be a square matrix, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ValueError(f"{name} contains NaN or infinite values")
    if not np.allclose(matrix, matrix.T):
        raise ValueError(f"{name} must be symmetric")
    return matrix


@dataclass
class NoiseParameters:
    """Process (R) and measurement (Q) noise covariances."""

    process_noise: np.ndarray
    measurement_noise: np.ndarray

    def __post_init__(self):
        """Validate noise matrices."""
        self.process_noise = _check_covariance(self.process_noise, "Process noise")
        self.measurement_noise = _check_covariance(self.measurement_noise, "Measurement noise")

    @classmethod
    def from_std(cls, process_std: Sequence[float], measurement_std: Sequence[float]) -> 'NoiseParameters':
        """
        Build diagonal covariances from per-component standard deviations.

        Raises:
            ValueError: If a standard deviation is not positive
        """
        process_std = np.atleast_1d(np.asarray(process_std, dtype=float))
        measurement_std = np.atleast_1d(np.asarray(measurement_std, dtype=float))
        if np.any(process_std <= 0) or np.any(measurement_std <= 0):
            raise ValueError("Noise standard deviations must be positive")
        return cls(np.diag(process_std ** 2), np.diag(measurement_std ** 2))

    @property
    def state_dim(self) -> int:
        return self.process_noise.shape[0]

    @property
    def measurement_dim(self) -> int:
        return self.measurement_noise.shape[0]


@dataclass
class ParticleFilterParameters:
    """Sampling parameters shared by particle-based filters."""

    num_particles: int = 500
    resampling_scheme: Union[str, ResamplingScheme] = ResamplingScheme.SYSTEMATIC
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate sampling parameters."""
        if int(self.num_particles) != self.num_particles or self.num_particles < 1:
            raise ValueError(f"Number of particles must be a positive integer, got {self.num_particles}")
        self.num_particles = int(self.num_particles)
        self.resampling_scheme = ResamplingScheme.parse(self.resampling_scheme)
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"Seed must be non-negative, got {self.seed}")

    def make_rng(self) -> np.random.Generator:
        """Generator seeded with ``seed`` (fresh entropy when None)."""
        return np.random.default_rng(self.seed)

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any]):
        return cls(**_filter_fields(cls, mapping))


@dataclass
class FastSlamParameters(ParticleFilterParameters):
    """Particle parameters plus the landmark bookkeeping of FastSLAM."""

    log_odds_hit: float = 1.0
    new_feature_weight: float = 1.0

    def __post_init__(self):
        super().__post_init__()
        if self.new_feature_weight <= 0:
            raise ValueError(f"New feature weight must be positive, got {self.new_feature_weight}")


@dataclass
class KalmanParameters:
    """Numerical safeguards of the Extended Kalman Filter."""

    max_condition_number: float = 1e12
    divergence_threshold: float = 1e6
    initial_covariance: np.ndarray = field(default_factory=lambda: np.eye(3) * 0.1)

    def __post_init__(self):
        if self.max_condition_number <= 1:
            raise ValueError(f"Maximum condition number must exceed 1, got {self.max_condition_number}")
        if self.divergence_threshold <= 0:
            raise ValueError(f"Divergence threshold must be positive, got {self.divergence_threshold}")
        self.initial_covariance = _check_covariance(self.initial_covariance, "Initial covariance")

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any]):
        return cls(**_filter_fields(cls, mapping))
