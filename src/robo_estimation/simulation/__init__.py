"""
Simulation components for exercising the estimators.

Components:
    - LandmarkWorld: planar robot among point landmarks producing odometry
      and tagged range-bearing observations
    - ScenarioParameters: validated scenario configuration
    - position_rmse / landmark_rmse: accuracy metrics
"""

from .scenario import (LandmarkWorld, ScenarioParameters, SimulationStep,
                       position_rmse, landmark_rmse)

__all__ = [
    "LandmarkWorld",
    "ScenarioParameters",
    "SimulationStep",
    "position_rmse",
    "landmark_rmse"
]
