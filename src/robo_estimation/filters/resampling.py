"""
Weighted resampling for particle filters.

Resampling replaces a weighted particle set by an unweighted one of the same
size, drawn with replacement in proportion to the weights. All schemes share
the same selection sweep and only differ in how the N draw positions over
[0, W) are generated, where W = Σ wᵢ:

    Multinomial:  uᵢ ~ U[0, W) independently (results kept in draw order)
    IID:          uᵢ ~ U[0, W) independently, sorted before the sweep
    Stratified:   uᵢ = (i + Uᵢ) / N · W,  Uᵢ ~ U[0, 1) independently
    Systematic:   uᵢ = (i + U) / N · W,   U ~ U[0, 1) shared

Stratified and systematic draws place exactly one position per stratum of
width W/N, which lowers the variance of the number of copies each particle
receives compared to independent draws.

Selection Sweep:
    With cumulative weights cⱼ = Σ_{k≤j} w_k, draw u selects the particle j
    with c_{j-1} ≤ u < cⱼ. Walking the sorted draws with a single forward
    pointer makes the sweep O(N). Zero-weight particles own an empty interval
    and are never selected.
"""

import copy
import logging
import numpy as np
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Union

from ..exceptions import ResamplingError

logger = logging.getLogger(__name__)


class ResamplingScheme(Enum):
    """Resampling algorithms selectable at filter construction."""
    MULTINOMIAL = "multinomial"   # Independent draws, unsorted
    IID = "iid"                   # Independent draws, sorted
    STRATIFIED = "stratified"     # One independent draw per stratum
    SYSTEMATIC = "systematic"     # One shared offset, equal spacing

    @classmethod
    def parse(cls, value: Union[str, 'ResamplingScheme']) -> 'ResamplingScheme':
        """Accept either an enum member or its (case-insensitive) value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            options = ", ".join(scheme.value for scheme in cls)
            raise ValueError(f"Unknown resampling scheme: {value!r} (expected one of {options})") from None


def _validate_weights(weights: np.ndarray, num_particles: int) -> float:
    """Check the weight vector and return its total."""
    if num_particles == 0:
        raise ResamplingError("Cannot resample an empty particle set")
    if weights.shape != (num_particles,):
        raise ResamplingError(
            f"Expected {num_particles} weights, got array of shape {weights.shape}")
    if not np.all(np.isfinite(weights)):
        raise ResamplingError("Weights contain NaN or infinite values")
    if np.any(weights < 0):
        raise ResamplingError("Weights must be non-negative")

    total = float(np.sum(weights))
    if total <= 0.0:
        raise ResamplingError("Total weight is zero, every particle is impossible")
    return total


def _sweep(sorted_draws: np.ndarray, weights: np.ndarray, total: float) -> np.ndarray:
    """
    Map ascending draw positions onto particle indices.

    Args:
        sorted_draws: Draw positions in [0, total), ascending
        weights: Non-negative particle weights
        total: Σ weights

    Returns:
        Selected index for each draw
    """
    last = int(np.flatnonzero(weights)[-1])
    indices = np.empty(sorted_draws.shape[0], dtype=int)

    index = 0
    cumulative = float(weights[0])
    for i, draw in enumerate(sorted_draws):
        while cumulative <= draw:
            if index >= last:
                # Rounding left the running sum short of the total
                cumulative = total
                index = last
                break
            index += 1
            cumulative += weights[index]
        indices[i] = index

    return indices


def _multinomial_draws(num: int, total: float, rng: np.random.Generator) -> np.ndarray:
    return rng.random(num) * total


def _iid_draws(num: int, total: float, rng: np.random.Generator) -> np.ndarray:
    return np.sort(rng.random(num) * total)


def _stratified_draws(num: int, total: float, rng: np.random.Generator) -> np.ndarray:
    return (np.arange(num) + rng.random(num)) / num * total


def _systematic_draws(num: int, total: float, rng: np.random.Generator) -> np.ndarray:
    return (np.arange(num) + rng.random()) / num * total


_DRAW_GENERATORS: Dict[ResamplingScheme, Callable[[int, float, np.random.Generator], np.ndarray]] = {
    ResamplingScheme.MULTINOMIAL: _multinomial_draws,
    ResamplingScheme.IID: _iid_draws,
    ResamplingScheme.STRATIFIED: _stratified_draws,
    ResamplingScheme.SYSTEMATIC: _systematic_draws,
}


def select_indices(weights: Union[np.ndarray, Sequence[float]],
                   scheme: Union[str, ResamplingScheme] = ResamplingScheme.SYSTEMATIC,
                   rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Choose N source indices in proportion to N weights.

    Args:
        weights: Non-negative, not necessarily normalised weights
        scheme: Draw generation scheme
        rng: Random generator; defaults to a fresh one

    Returns:
        Integer array of N indices into the weighted set

    Raises:
        ResamplingError: If the set is empty or the weights are unusable
    """
    scheme = ResamplingScheme.parse(scheme)
    rng = rng if rng is not None else np.random.default_rng()
    weights = np.asarray(weights, dtype=float).reshape(-1)
    total = _validate_weights(weights, weights.shape[0])

    draws = _DRAW_GENERATORS[scheme](weights.shape[0], total, rng)

    if scheme is ResamplingScheme.MULTINOMIAL:
        order = np.argsort(draws, kind='stable')
        indices = np.empty_like(order)
        indices[order] = _sweep(draws[order], weights, total)
        return indices

    return _sweep(draws, weights, total)


def resample(particles: Union[np.ndarray, Sequence],
             weights: Union[np.ndarray, Sequence[float]],
             scheme: Union[str, ResamplingScheme] = ResamplingScheme.SYSTEMATIC,
             rng: Optional[np.random.Generator] = None):
    """
    Draw a new, unweighted particle set of the same size.

    Array particles (N, S) come back as a freshly allocated (N, S) array.
    Any other sequence comes back as a list of deep copies so that no two
    output particles share mutable state.

    Args:
        particles: Particle set
        weights: One weight per particle
        scheme: Resampling scheme
        rng: Random generator

    Returns:
        Resampled particle set

    Raises:
        ResamplingError: If the set is empty or the weights are unusable
    """
    num_particles = len(particles)
    if num_particles == 0:
        raise ResamplingError("Cannot resample an empty particle set")
    if len(weights) != num_particles:
        raise ResamplingError(f"Expected {num_particles} weights, got {len(weights)}")

    indices = select_indices(weights, scheme, rng)
    logger.debug(f"Resampled {num_particles} particles, {len(np.unique(indices))} distinct survivors")

    if isinstance(particles, np.ndarray):
        return particles[indices].copy()
    return [copy.deepcopy(particles[i]) for i in indices]


def multinomial_resample(particles, weights, rng=None):
    """Independent draws, returned in draw order."""
    return resample(particles, weights, ResamplingScheme.MULTINOMIAL, rng)


def sorted_multinomial_resample(particles, weights, rng=None):
    """Independent draws, sorted before selection."""
    return resample(particles, weights, ResamplingScheme.IID, rng)


def stratified_resample(particles, weights, rng=None):
    """One independent draw per stratum."""
    return resample(particles, weights, ResamplingScheme.STRATIFIED, rng)


def systematic_resample(particles, weights, rng=None):
    """Equally spaced draws with one shared random offset."""
    return resample(particles, weights, ResamplingScheme.SYSTEMATIC, rng)
