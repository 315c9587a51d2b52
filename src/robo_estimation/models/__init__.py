"""
Motion and measurement models.

The filters only depend on the protocols in ``base``; the remaining modules
provide reference models for planar robots and for linear systems.
"""

from .base import (MotionModel, StochasticMotionModel, MeasurementModel,
                   FeatureMeasurementModel, innovation)
from .motion import UnicycleMotionModel, LinearMotionModel, VehicleParameters, normalize_angle
from .measurement import LinearMeasurementModel, RelativePositionModel, RangeBearingModel

__all__ = [
    # Protocols
    "MotionModel",
    "StochasticMotionModel",
    "MeasurementModel",
    "FeatureMeasurementModel",
    "innovation",

    # Reference models
    "UnicycleMotionModel",
    "LinearMotionModel",
    "VehicleParameters",
    "LinearMeasurementModel",
    "RelativePositionModel",
    "RangeBearingModel",
    "normalize_angle"
]
