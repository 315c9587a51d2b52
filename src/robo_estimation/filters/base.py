"""
Common contract implemented by every recursive Bayesian estimator.

A filter owns a belief over the robot state and advances it one step at a
time with ``update_estimate``:

    control is None       -> prediction skipped, the pose is not moved
    measurements is None  -> correction skipped (no weighting, no resampling)

``gaussian_estimate`` returns a mean/covariance snapshot of the belief. It is
a pure read: it never resamples or otherwise mutates the filter, so repeated
calls without an intervening update return identical results.

Known-correspondence filters receive measurements as ``(identifier, z)``
pairs whose identifier names the landmark that produced ``z``.
"""

import numpy as np
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple

from ..utils.state import GaussianState
from .diagnostics import FilterDiagnostics

Measurement = np.ndarray
TaggedMeasurement = Tuple[int, np.ndarray]


class BayesianFilter(ABC):
    """Filter whose measurements carry no landmark identity."""

    @abstractmethod
    def update_estimate(self, control: Optional[np.ndarray],
                        measurements: Optional[Sequence[Measurement]],
                        dt: float) -> None:
        """
        Advance the belief by one time step.

        Args:
            control: Control input u, or None to skip prediction
            measurements: Batch of observations z, or None to skip correction
            dt: Elapsed time since the previous step (seconds)
        """

    @abstractmethod
    def gaussian_estimate(self) -> GaussianState:
        """Mean/covariance summary of the current belief."""

    @abstractmethod
    def get_diagnostics(self) -> FilterDiagnostics:
        """Numerical health of the current belief."""


class BayesianFilterKnownCorrespondences(ABC):
    """Filter whose measurements are tagged with their landmark identifier."""

    @abstractmethod
    def update_estimate(self, control: Optional[np.ndarray],
                        measurements: Optional[Sequence[TaggedMeasurement]],
                        dt: float) -> None:
        """
        Advance the belief by one time step.

        Args:
            control: Control input u, or None to skip prediction
            measurements: Batch of (landmark identifier, z) pairs, or None
            dt: Elapsed time since the previous step (seconds)
        """

    @abstractmethod
    def gaussian_estimate(self) -> GaussianState:
        """Mean/covariance summary of the current belief."""

    @abstractmethod
    def get_diagnostics(self) -> FilterDiagnostics:
        """Numerical health of the current belief."""


class ParticleBasedFilter:
    """Mixin exposing the particle collection of a sampling-based filter."""

    _particles = None

    @property
    def particles(self):
        """Copy of the current particle collection."""
        if isinstance(self._particles, np.ndarray):
            return self._particles.copy()
        return [particle.copy() for particle in self._particles]

    @property
    def num_particles(self) -> int:
        return len(self._particles)


def as_matrix(value, dim: int, name: str) -> np.ndarray:
    """
    Validate a square noise/covariance matrix.

    Raises:
        ValueError: If the matrix has the wrong shape or non-finite entries
    """
    matrix = np.atleast_2d(np.asarray(value, dtype=float))
    if matrix.shape != (dim, dim):
        raise ValueError(f"{name} shape must be ({dim}, {dim}), got {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ValueError(f"{name} contains NaN or infinite values")
    return matrix.copy()


def check_time_step(dt: float) -> None:
    """Reject negative or non-finite time steps."""
    if not np.isfinite(dt) or dt < 0:
        raise ValueError(f"Time step must be non-negative, got {dt}")


def freeze_landmarks(landmarks: Optional[Mapping[int, np.ndarray]]) -> Mapping[int, np.ndarray]:
    """Copy a landmark table into a read-only mapping of read-only arrays."""
    table = {}
    for identifier, landmark in (landmarks or {}).items():
        array = np.array(landmark, dtype=float).reshape(-1)
        array.setflags(write=False)
        table[int(identifier)] = array
    return MappingProxyType(table)


def known_measurements(measurements: Optional[Sequence[TaggedMeasurement]],
                       landmarks: Mapping[int, np.ndarray]):
    """
    Keep the tagged measurements whose identifier is in the landmark table.

    Returns:
        List of (landmark, z) pairs in batch order
    """
    if measurements is None:
        return []
    return [(landmarks[identifier], np.asarray(z, dtype=float))
            for identifier, z in measurements
            if identifier in landmarks]
