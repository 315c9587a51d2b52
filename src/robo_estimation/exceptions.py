"""
Exception hierarchy for recursive state estimation.

Numeric failures that happen inside an update step are raised as one of the
classes below so that callers can tell them apart from plain argument
validation errors (which remain ``ValueError``). Whenever one of these is
raised from ``update_estimate`` the filter's belief is left exactly as it was
before the call.
"""


class EstimationError(Exception):
    """Base class for all estimation failures."""


class SingularInnovationError(EstimationError):
    """
    Raised when an innovation (or feature) covariance cannot be inverted.

    Attributes:
        condition_number: Condition number of the offending matrix, if known
    """

    def __init__(self, message: str, condition_number: float = float('inf')):
        super().__init__(message)
        self.condition_number = condition_number


class DistributionError(EstimationError, ValueError):
    """Raised when a Gaussian is built from a covariance that is not positive definite."""


class ResamplingError(EstimationError, ValueError):
    """Raised when a particle set cannot be resampled (empty set, zero total weight)."""
