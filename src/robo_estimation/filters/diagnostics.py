"""
Filter health diagnostics.

Filters report a ``FilterDiagnostics`` snapshot describing how their belief
is behaving numerically:

- Covariance trace: grows without bound when the filter diverges
- Condition number κ(P) = λ_max / λ_min: large values signal an
  ill-conditioned covariance
- Innovation magnitude and normalised innovation squared
  d² = νᵀ S⁻¹ ν of the last correction (Kalman filters)
- Effective sample size N_eff = (Σ wᵢ)² / Σ wᵢ² of the last weighting pass
  (particle filters); N_eff ≪ N indicates weight degeneracy
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FilterState(Enum):
    """Enumeration of possible filter states for diagnostics."""
    INITIALIZING = "initializing"
    CONVERGED = "converged"
    DIVERGING = "diverging"
    ILL_CONDITIONED = "ill_conditioned"
    DEGENERATE = "degenerate"


@dataclass
class FilterDiagnostics:
    """Container for filter diagnostic information."""
    filter_state: FilterState
    prediction_count: int
    update_count: int
    covariance_trace: float
    condition_number: float
    innovation_magnitude: float = 0.0
    mahalanobis_distance: float = 0.0
    effective_sample_size: Optional[float] = None


def effective_sample_size(weights: np.ndarray) -> float:
    """
    Kish effective sample size of unnormalised weights.

    Returns 0.0 when every weight is zero.
    """
    weights = np.asarray(weights, dtype=float)
    total = weights.sum()
    if total <= 0.0:
        return 0.0
    return float(total ** 2 / np.sum(weights ** 2))


def condition_number(matrix: np.ndarray) -> float:
    """Condition number, or infinity when it cannot be computed."""
    try:
        return float(np.linalg.cond(matrix))
    except np.linalg.LinAlgError:
        return float('inf')


def assess_covariance(covariance: np.ndarray, has_corrected: bool,
                      divergence_threshold: float = 1e6,
                      max_condition_number: float = 1e12) -> FilterState:
    """
    Classify a covariance matrix.

    Args:
        covariance: Current state covariance
        has_corrected: Whether any measurement has been incorporated yet
        divergence_threshold: Trace above which the filter is diverging
        max_condition_number: κ(P) above which the filter is ill-conditioned

    Returns:
        FilterState for the covariance
    """
    if not np.all(np.isfinite(covariance)) or np.trace(covariance) > divergence_threshold:
        return FilterState.DIVERGING
    if not has_corrected:
        return FilterState.INITIALIZING
    # A collapsed particle cloud has a zero covariance; that is not ill-conditioning
    if np.any(covariance) and condition_number(covariance) > max_condition_number:
        return FilterState.ILL_CONDITIONED
    return FilterState.CONVERGED
