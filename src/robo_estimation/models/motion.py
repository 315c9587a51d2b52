"""
Motion Models for Planar Mobile Robots

Reference implementations of the ``MotionModel`` capability used by the
filters in this package.

Unicycle Kinematics:
    State x = [px, py, θ]ᵀ, control u = [v, ω]ᵀ.

    For ω ≠ 0 the robot follows a circular arc of radius r = v / ω:
        px' = px - r sin θ + r sin(θ + ω dt)
        py' = py + r cos θ - r cos(θ + ω dt)
        θ'  = θ + ω dt
    and for ω → 0 the straight-line limit:
        px' = px + v cos θ dt
        py' = py + v sin θ dt

Differential Drive:
    Controls are often measured as wheel speeds. With wheel radius ρ and
    wheel base L:
        v = ρ (ω_R + ω_L) / 2
        ω = ρ (ω_R - ω_L) / L

Author: Scientific Computing Team
License: MIT
"""

import numpy as np
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple


def normalize_angle(angle):
    """Wrap an angle (or array of angles) into [-π, π)."""
    return np.mod(np.asarray(angle) + np.pi, 2 * np.pi) - np.pi


@dataclass
class VehicleParameters:
    """Physical parameters for a differential drive vehicle."""

    wheel_base: float = 0.5        # Distance between wheels [m]
    wheel_radius: float = 0.1      # Wheel radius [m]
    max_wheel_speed: float = 10.0  # Maximum wheel angular velocity [rad/s]

    def __post_init__(self):
        """Validate vehicle parameters."""
        if self.wheel_base <= 0:
            raise ValueError(f"Wheel base must be positive, got {self.wheel_base}")
        if self.wheel_radius <= 0:
            raise ValueError(f"Wheel radius must be positive, got {self.wheel_radius}")
        if self.max_wheel_speed <= 0:
            raise ValueError(f"Maximum wheel speed must be positive, got {self.max_wheel_speed}")


class UnicycleMotionModel:
    """
    Velocity motion model for a planar robot.

    Implements ``predict``, ``jacobian_wrt_state`` and a stochastic
    ``sample`` that perturbs the commanded velocities before integrating,
    which is how map-building filters propagate their particles.

    Attributes:
        vehicle_params: Physical vehicle parameters
        control_noise_std: Standard deviations (σ_v, σ_ω) applied by ``sample``
    """

    STATE_DIM = 3
    CONTROL_DIM = 2

    def __init__(self,
                 vehicle_params: Optional[VehicleParameters] = None,
                 control_noise_std: Tuple[float, float] = (0.0, 0.0),
                 min_angular_velocity: float = 1e-9):
        """
        Initialize the motion model.

        Args:
            vehicle_params: Physical vehicle parameters
            control_noise_std: (σ_v, σ_ω) used by ``sample``
            min_angular_velocity: |ω| below which the straight-line limit is used

        Raises:
            ValueError: If a noise level is negative
        """
        self.vehicle_params = vehicle_params or VehicleParameters()
        self.control_noise_std = np.asarray(control_noise_std, dtype=float)
        if self.control_noise_std.shape != (2,) or np.any(self.control_noise_std < 0):
            raise ValueError(f"Control noise must be two non-negative values, got {control_noise_std}")
        self._min_angular_velocity = min_angular_velocity

    def predict(self, state: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        """Integrate the pose over dt assuming constant (v, ω)."""
        px, py, theta = np.asarray(state, dtype=float)
        v, omega = np.asarray(control, dtype=float)

        if abs(omega) < self._min_angular_velocity:
            px += v * np.cos(theta) * dt
            py += v * np.sin(theta) * dt
        else:
            radius = v / omega
            px += -radius * np.sin(theta) + radius * np.sin(theta + omega * dt)
            py += radius * np.cos(theta) - radius * np.cos(theta + omega * dt)

        return np.array([px, py, normalize_angle(theta + omega * dt)])

    def jacobian_wrt_state(self, state: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        """
        Motion Jacobian G = ∂f/∂x.

        Only the heading couples into the position update:
            ∂px'/∂θ = -r cos θ + r cos(θ + ω dt)
            ∂py'/∂θ = -r sin θ + r sin(θ + ω dt)
        """
        theta = float(np.asarray(state, dtype=float)[2])
        v, omega = np.asarray(control, dtype=float)

        G = np.eye(3)
        if abs(omega) < self._min_angular_velocity:
            G[0, 2] = -v * np.sin(theta) * dt
            G[1, 2] = v * np.cos(theta) * dt
        else:
            radius = v / omega
            G[0, 2] = -radius * np.cos(theta) + radius * np.cos(theta + omega * dt)
            G[1, 2] = -radius * np.sin(theta) + radius * np.sin(theta + omega * dt)
        return G

    def sample(self, state: np.ndarray, control: np.ndarray, dt: float,
               rng: np.random.Generator) -> np.ndarray:
        """Integrate with velocities perturbed by N(0, diag(σ_v², σ_ω²))."""
        noisy_control = np.asarray(control, dtype=float) + rng.normal(0.0, 1.0, 2) * self.control_noise_std
        return self.predict(state, noisy_control, dt)

    def control_from_wheel_velocities(self, left_wheel_speed: float,
                                      right_wheel_speed: float) -> np.ndarray:
        """
        Convert wheel angular velocities [rad/s] into a (v, ω) control.

        Wheel speeds are clipped to the vehicle's maximum before conversion.
        """
        limit = self.vehicle_params.max_wheel_speed
        if max(abs(left_wheel_speed), abs(right_wheel_speed)) > limit:
            warnings.warn(f"Wheel speed clipped to {limit:.2f} rad/s")
        left = np.clip(left_wheel_speed, -limit, limit) * self.vehicle_params.wheel_radius
        right = np.clip(right_wheel_speed, -limit, limit) * self.vehicle_params.wheel_radius

        linear_velocity = (left + right) / 2.0
        angular_velocity = (right - left) / self.vehicle_params.wheel_base
        return np.array([linear_velocity, angular_velocity])

    def __repr__(self) -> str:
        return (f"UnicycleMotionModel(wheel_base={self.vehicle_params.wheel_base}, "
                f"control_noise_std={self.control_noise_std.tolist()})")


class LinearMotionModel:
    """
    Linear transition x' = A x + B u.

    ``dt`` is ignored; discretise A and B for the step size you use.
    """

    def __init__(self, A: np.ndarray, B: Optional[np.ndarray] = None):
        self.A = np.atleast_2d(np.asarray(A, dtype=float))
        if self.A.shape[0] != self.A.shape[1]:
            raise ValueError(f"Transition matrix must be square, got {self.A.shape}")
        self.B = None if B is None else np.atleast_2d(np.asarray(B, dtype=float))
        if self.B is not None and self.B.shape[0] != self.A.shape[0]:
            raise ValueError(f"Control matrix must have {self.A.shape[0]} rows, got {self.B.shape[0]}")

    def predict(self, state: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        predicted = self.A @ np.asarray(state, dtype=float)
        if self.B is not None:
            predicted = predicted + self.B @ np.asarray(control, dtype=float)
        return predicted

    def jacobian_wrt_state(self, state: np.ndarray, control: np.ndarray, dt: float) -> np.ndarray:
        return self.A.copy()
