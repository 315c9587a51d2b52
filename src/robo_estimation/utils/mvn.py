"""
Multivariate normal primitive used for sampling noise and scoring innovations.

Thin wrapper over ``scipy.stats.multivariate_normal`` that

- validates the covariance at construction (square, symmetric, positive
  definite) and raises ``DistributionError`` instead of silently coercing,
- draws from an explicitly injected ``numpy.random.Generator`` so that
  filters can be made reproducible,
- returns shapes that do not depend on the degenerate N == 1 or S == 1
  squeezing scipy performs.
"""

import logging
import numpy as np
from scipy.stats import multivariate_normal
from typing import Optional

from ..exceptions import DistributionError

logger = logging.getLogger(__name__)


class MultivariateNormal:
    """
    Frozen Gaussian N(mean, covariance).

    Args:
        mean: Mean vector (S,)
        covariance: Covariance matrix (S, S), must be positive definite
        rng: Random generator used by ``sample``; defaults to a fresh one

    Raises:
        DistributionError: If the covariance is malformed or not positive definite
    """

    def __init__(self, mean: np.ndarray, covariance: np.ndarray,
                 rng: Optional[np.random.Generator] = None):
        self.mean = np.array(mean, dtype=float).reshape(-1)
        self.covariance = np.array(covariance, dtype=float)
        self.dim = self.mean.shape[0]
        self._rng = rng if rng is not None else np.random.default_rng()

        if self.covariance.shape != (self.dim, self.dim):
            raise DistributionError(
                f"Covariance shape must be ({self.dim}, {self.dim}), got {self.covariance.shape}")
        if not np.all(np.isfinite(self.covariance)):
            raise DistributionError("Covariance contains NaN or infinite values")
        if not np.allclose(self.covariance, self.covariance.T):
            raise DistributionError("Covariance must be symmetric")

        try:
            self._distribution = multivariate_normal(
                mean=self.mean, cov=self.covariance, allow_singular=False)
        except (ValueError, np.linalg.LinAlgError) as exc:
            logger.warning(f"Rejected covariance for multivariate normal: {exc}")
            raise DistributionError(f"Covariance must be positive definite: {exc}") from exc

    def sample(self, size: Optional[int] = None) -> np.ndarray:
        """
        Draw samples.

        Args:
            size: Number of samples, or None for a single draw

        Returns:
            (S,) array for a single draw, (size, S) array otherwise
        """
        draws = self._distribution.rvs(size=size, random_state=self._rng)
        if size is None:
            return np.asarray(draws, dtype=float).reshape(self.dim)
        return np.asarray(draws, dtype=float).reshape(size, self.dim)

    def pdf(self, x: np.ndarray) -> np.ndarray:
        """Density at one point (scalar) or at each row of an (N, S) array."""
        return np.exp(self.logpdf(x))

    def logpdf(self, x: np.ndarray) -> np.ndarray:
        """Log-density at one point (scalar) or at each row of an (N, S) array."""
        points = np.asarray(x, dtype=float)
        if points.ndim <= 1:
            return float(np.asarray(self._distribution.logpdf(points.reshape(1, self.dim))).reshape(-1)[0])
        return np.atleast_1d(self._distribution.logpdf(points.reshape(-1, self.dim)))

    def __repr__(self) -> str:
        return f"MultivariateNormal(dim={self.dim})"
