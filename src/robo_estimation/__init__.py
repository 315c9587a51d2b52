"""
Robo Estimation: Recursive Bayesian Pose Estimation for Mobile Robots

A scientific Python package implementing the classic probabilistic
robotics estimators behind one update/estimate contract.

This package implements:
- Extended Kalman Filter, with and without known landmark correspondences
- Particle Filter (Monte Carlo Localization), with and without known correspondences
- FastSLAM 1.0 with per-particle EKF landmark maps
- Multinomial, sorted multinomial, stratified and systematic resampling
- Reference motion/measurement models and a landmark world simulation

Motion and measurement models are supplied by the caller through small
protocols, so the filters work for any state and measurement dimension.
"""

from .exceptions import (EstimationError, SingularInnovationError,
                         DistributionError, ResamplingError)
from .utils import GaussianState, Feature, MultivariateNormal, gaussian_estimate
from .filters import (BayesianFilter, BayesianFilterKnownCorrespondences,
                      ExtendedKalmanFilter, ExtendedKalmanFilterKnownCorrespondences,
                      ParticleFilter, ParticleFilterKnownCorrespondences,
                      FastSlam1, FastParticle, ResamplingScheme, resample,
                      FilterDiagnostics, FilterState)
from .config import (NoiseParameters, ParticleFilterParameters,
                     FastSlamParameters, KalmanParameters)

__version__ = "1.0.0"
__author__ = "Robo Estimation Team"

__all__ = [
    "EstimationError",
    "SingularInnovationError",
    "DistributionError",
    "ResamplingError",
    "GaussianState",
    "Feature",
    "MultivariateNormal",
    "gaussian_estimate",
    "BayesianFilter",
    "BayesianFilterKnownCorrespondences",
    "ExtendedKalmanFilter",
    "ExtendedKalmanFilterKnownCorrespondences",
    "ParticleFilter",
    "ParticleFilterKnownCorrespondences",
    "FastSlam1",
    "FastParticle",
    "ResamplingScheme",
    "resample",
    "FilterDiagnostics",
    "FilterState",
    "NoiseParameters",
    "ParticleFilterParameters",
    "FastSlamParameters",
    "KalmanParameters"
]
