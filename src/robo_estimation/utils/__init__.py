"""
Shared numeric utilities: Gaussian belief containers and the multivariate
normal primitive used by every filter.
"""

from .state import GaussianState, Feature, gaussian_estimate
from .mvn import MultivariateNormal

__all__ = [
    "GaussianState",
    "Feature",
    "gaussian_estimate",
    "MultivariateNormal"
]
