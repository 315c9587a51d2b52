"""
Capability interfaces for the models injected into every filter.

Filters never inherit from or inspect concrete model classes; any object
providing the methods below can be plugged in. All methods must be pure
functions of their arguments so that per-particle evaluations are
independent.

Shapes (S: state size, Z: observation size, U: control size, L: landmark size):
    MotionModel.predict                 (S,), (U,), dt -> (S,)
    MotionModel.jacobian_wrt_state      (S,), (U,), dt -> (S, S)
    MeasurementModel.predict            (S,), (L,)|None -> (Z,)
    MeasurementModel.jacobian           (S,), (L,)|None -> (Z, S)
    FeatureMeasurementModel.jacobian_wrt_landmark   (S,), (L,) -> (Z, L)
    FeatureMeasurementModel.inverse                 (S,), (Z,) -> (L,)
"""

import numpy as np
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class MotionModel(Protocol):
    """State transition x' = f(x, u, dt) and its Jacobian G = ∂f/∂x."""

    def predict(self, state: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        ...

    def jacobian_wrt_state(self, state: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        ...


@runtime_checkable
class StochasticMotionModel(MotionModel, Protocol):
    """Motion model that can also draw a noisy successor state itself."""

    def sample(self, state: np.ndarray, control: np.ndarray, dt: float,
               rng: np.random.Generator) -> np.ndarray:
        ...


@runtime_checkable
class MeasurementModel(Protocol):
    """Observation z = h(x, m) and its Jacobian H = ∂h/∂x."""

    def predict(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        ...

    def jacobian(self, state: np.ndarray, landmark: Optional[np.ndarray] = None) -> np.ndarray:
        ...


@runtime_checkable
class FeatureMeasurementModel(MeasurementModel, Protocol):
    """Measurement model that also supports estimating the landmark itself."""

    def jacobian_wrt_landmark(self, state: np.ndarray, landmark: np.ndarray) -> np.ndarray:
        ...

    def inverse(self, state: np.ndarray, observation: np.ndarray) -> np.ndarray:
        ...


def innovation(model: MeasurementModel, observation: np.ndarray,
               predicted: np.ndarray) -> np.ndarray:
    """
    Innovation ν = z - ẑ, delegating to ``model.residual`` when provided.

    Models with angular components define ``residual`` to wrap the
    difference back into [-π, π).
    """
    residual = getattr(model, 'residual', None)
    if residual is not None:
        return np.asarray(residual(observation, predicted), dtype=float)
    return np.asarray(observation, dtype=float) - np.asarray(predicted, dtype=float)
