"""
Gaussian belief containers and the particle-cloud aggregator.

Every estimator in this package reports its belief as a ``GaussianState``:
a mean vector and a covariance matrix. Particle-based estimators summarise
their cloud with the empirical moments

    x̄ = (1/N) Σ pᵢ
    P = (1/N) Σ (pᵢ - x̄)(pᵢ - x̄)ᵀ

using the biased (divide-by-N) covariance so that a cloud collapsed onto a
single point reports exactly that point with a zero covariance.
"""

import numpy as np
from dataclasses import dataclass
from typing import Sequence, Union


@dataclass
class GaussianState:
    """
    Mean/covariance snapshot of a belief.

    Attributes:
        mean: State mean vector (S,)
        covariance: State covariance matrix (S, S)
    """

    mean: np.ndarray
    covariance: np.ndarray

    def __post_init__(self):
        self.mean = np.array(self.mean, dtype=float).reshape(-1)
        self.covariance = np.array(self.covariance, dtype=float)
        dim = self.mean.shape[0]
        if dim == 0:
            raise ValueError("Gaussian state must have at least one dimension")
        if self.covariance.shape != (dim, dim):
            raise ValueError(f"Covariance shape must be ({dim}, {dim}), got {self.covariance.shape}")

    @property
    def dim(self) -> int:
        """State dimension S."""
        return self.mean.shape[0]

    def copy(self) -> 'GaussianState':
        return GaussianState(self.mean.copy(), self.covariance.copy())

    def standard_deviations(self) -> np.ndarray:
        """Marginal standard deviations, clipped at zero for drifted diagonals."""
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    def mahalanobis_distance(self, point: np.ndarray) -> float:
        """
        Squared Mahalanobis distance d² = (p - x̄)ᵀ P⁻¹ (p - x̄).

        Falls back to the pseudo-inverse when the covariance is singular,
        as happens for a collapsed particle cloud.
        """
        diff = np.asarray(point, dtype=float).reshape(-1) - self.mean
        try:
            return float(diff @ np.linalg.solve(self.covariance, diff))
        except np.linalg.LinAlgError:
            return float(diff @ np.linalg.pinv(self.covariance) @ diff)


@dataclass
class Feature:
    """
    One landmark estimate carried by a FastSLAM particle.

    Attributes:
        mean: Landmark position estimate
        covariance: Landmark position covariance
        log_weight: Accumulated log-odds that the feature exists
    """

    mean: np.ndarray
    covariance: np.ndarray
    log_weight: float = 0.0

    def copy(self) -> 'Feature':
        return Feature(self.mean.copy(), self.covariance.copy(), self.log_weight)


def gaussian_estimate(particles: Union[np.ndarray, Sequence[np.ndarray]]) -> GaussianState:
    """
    Summarise a particle cloud by its empirical mean and biased covariance.

    Args:
        particles: (N, S) array, or a sequence of N state vectors

    Returns:
        GaussianState with the cloud's first two moments

    Raises:
        ValueError: If the cloud is empty
    """
    cloud = np.asarray(particles, dtype=float)
    if cloud.ndim == 1:
        cloud = cloud.reshape(-1, 1)
    if cloud.shape[0] == 0:
        raise ValueError("Cannot summarise an empty particle set")

    mean = cloud.mean(axis=0)
    diff = cloud - mean
    covariance = diff.T @ diff / cloud.shape[0]
    return GaussianState(mean, covariance)
