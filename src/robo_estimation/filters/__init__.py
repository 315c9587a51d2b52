"""
Recursive Bayesian state estimators.

This module provides:
- Extended Kalman Filter (EKF), with and without known correspondences
- Particle Filter / Monte Carlo Localization, with and without known correspondences
- FastSLAM 1.0 with per-particle landmark maps
- Multinomial, sorted multinomial, stratified and systematic resampling

All filters share the ``update_estimate`` / ``gaussian_estimate`` contract.
"""

from .base import BayesianFilter, BayesianFilterKnownCorrespondences, ParticleBasedFilter
from .diagnostics import FilterDiagnostics, FilterState, effective_sample_size
from .ekf import ExtendedKalmanFilter, ExtendedKalmanFilterKnownCorrespondences
from .particle import ParticleFilter, ParticleFilterKnownCorrespondences
from .fastslam import FastSlam1, FastParticle
from .resampling import (ResamplingScheme, resample, select_indices, multinomial_resample,
                         sorted_multinomial_resample, stratified_resample, systematic_resample)

__all__ = [
    # Contract
    "BayesianFilter",
    "BayesianFilterKnownCorrespondences",
    "ParticleBasedFilter",

    # Estimators
    "ExtendedKalmanFilter",
    "ExtendedKalmanFilterKnownCorrespondences",
    "ParticleFilter",
    "ParticleFilterKnownCorrespondences",
    "FastSlam1",
    "FastParticle",

    # Resampling
    "ResamplingScheme",
    "resample",
    "select_indices",
    "multinomial_resample",
    "sorted_multinomial_resample",
    "stratified_resample",
    "systematic_resample",

    # Diagnostics
    "FilterDiagnostics",
    "FilterState",
    "effective_sample_size"
]
