#!/usr/bin/env python3
"""
Landmark Localization Demo

Drives a simulated robot among point landmarks and runs the estimators on
the same odometry and range-bearing streams:

- EKF localizing against the known landmark map
- Particle filter (MCL) localizing against the known landmark map
- FastSLAM 1.0 building its own map from the tagged observations

Run with: robo-estimation --filter all --steps 300 --seed 1
"""

import argparse
import logging
import numpy as np
from typing import Dict, List, Optional, Sequence

from .config import FastSlamParameters, KalmanParameters, NoiseParameters
from .exceptions import EstimationError
from .filters import (ExtendedKalmanFilterKnownCorrespondences, FastSlam1,
                      ParticleFilterKnownCorrespondences, ResamplingScheme)
from .models import RangeBearingModel, UnicycleMotionModel
from .simulation import LandmarkWorld, ScenarioParameters, landmark_rmse, position_rmse
from .utils import GaussianState

logger = logging.getLogger(__name__)

FILTER_NAMES = ('ekf', 'pf', 'fastslam')

# Per-step pose noise assumed by the filters [m, m, rad]
PROCESS_STD = (0.02, 0.02, 0.01)


def build_filter(name: str, world: LandmarkWorld, noise: NoiseParameters,
                 particle_params: FastSlamParameters,
                 kalman_params: Optional[KalmanParameters] = None):
    """Construct one estimator for the given world."""
    kalman_params = kalman_params or KalmanParameters(initial_covariance=np.diag([0.01, 0.01, 0.001]))
    initial_state = GaussianState(world.initial_pose, kalman_params.initial_covariance)
    rng = particle_params.make_rng()

    if name == 'ekf':
        return ExtendedKalmanFilterKnownCorrespondences(
            noise.process_noise, noise.measurement_noise, world.landmarks,
            RangeBearingModel(), UnicycleMotionModel(), initial_state,
            kalman_params.max_condition_number, kalman_params.divergence_threshold)
    if name == 'pf':
        return ParticleFilterKnownCorrespondences(
            noise.process_noise, noise.measurement_noise, world.landmarks,
            RangeBearingModel(), UnicycleMotionModel(), initial_state,
            particle_params.num_particles, particle_params.resampling_scheme, rng)
    if name == 'fastslam':
        p = world.params
        motion_model = UnicycleMotionModel(control_noise_std=(p.velocity_noise_std, p.yaw_rate_noise_std))
        return FastSlam1(
            noise.process_noise, noise.measurement_noise, RangeBearingModel(), motion_model,
            initial_state, particle_params.num_particles, particle_params.resampling_scheme, rng,
            initial_noise=initial_state.covariance,
            log_odds_hit=particle_params.log_odds_hit,
            new_feature_weight=particle_params.new_feature_weight,
            use_model_sampling=True)
    raise ValueError(f"Unknown filter '{name}', expected one of {FILTER_NAMES}")


def run_filter(estimator, steps: Sequence, dt: float) -> np.ndarray:
    """
    Feed every simulated step to the estimator.

    A step that fails numerically is reported and skipped; the estimator
    keeps its previous belief.

    Returns:
        (T, S) array of estimated means
    """
    estimates = []
    failures = 0
    for step in steps:
        try:
            estimator.update_estimate(step.control, step.observations, dt)
        except EstimationError as exc:
            failures += 1
            logger.warning(f"[{step.time:6.1f}s] {type(estimator).__name__} step skipped: {exc}")
        estimates.append(estimator.gaussian_estimate().mean)

    if failures:
        logger.info(f"{type(estimator).__name__}: {failures} steps skipped")
    return np.array(estimates)


def run_simulation(filters: Sequence[str], scenario: ScenarioParameters,
                   particle_params: FastSlamParameters) -> Dict[str, Dict[str, float]]:
    """
    Simulate one scenario and evaluate the requested filters on it.

    Returns:
        Filter name -> metrics ('position_rmse', 'final_error', and
        'landmark_rmse' / 'landmarks_mapped' for FastSLAM)
    """
    print("=== Landmark Localization ===")
    print(f"Steps: {scenario.num_steps}, dt: {scenario.dt}s, landmarks: {scenario.num_landmarks}")
    print()

    world = LandmarkWorld(scenario)
    steps = world.run()
    truth = np.array([step.true_pose for step in steps])

    # Process noise is the pose spread caused by odometry noise over one step
    noise = NoiseParameters.from_std(PROCESS_STD, [scenario.range_noise_std, scenario.bearing_noise_std])

    results = {}
    for name in filters:
        estimator = build_filter(name, world, noise, particle_params)
        estimates = run_filter(estimator, steps, scenario.dt)

        metrics = {
            'position_rmse': position_rmse(estimates, truth),
            'final_error': float(np.linalg.norm(estimates[-1, :2] - truth[-1, :2]))
        }
        if isinstance(estimator, FastSlam1):
            landmark_map = {identifier: belief.mean for identifier, belief in estimator.map_estimate().items()}
            metrics['landmark_rmse'] = landmark_rmse(landmark_map, world.landmarks)
            metrics['landmarks_mapped'] = len(landmark_map)
        results[name] = metrics

        print(f"{name:>9}: position RMSE {metrics['position_rmse']:6.3f} m | "
              f"final error {metrics['final_error']:6.3f} m")
        if 'landmark_rmse' in metrics:
            print(f"{'':>9}  landmarks mapped {metrics['landmarks_mapped']}/{len(world.landmarks)} | "
                  f"landmark RMSE {metrics['landmark_rmse']:6.3f} m")

    return results


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Landmark localization with EKF, MCL and FastSLAM')
    parser.add_argument('--filter', choices=FILTER_NAMES + ('all',), default='all',
                        help='Estimator to run (default: all)')
    parser.add_argument('--steps', type=int, default=200,
                        help='Number of simulation steps (default: 200)')
    parser.add_argument('--dt', type=float, default=0.1,
                        help='Time step in seconds (default: 0.1)')
    parser.add_argument('--particles', type=int, default=500,
                        help='Number of particles (default: 500)')
    parser.add_argument('--scheme', choices=[scheme.value for scheme in ResamplingScheme],
                        default=ResamplingScheme.SYSTEMATIC.value,
                        help='Resampling scheme (default: systematic)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for the simulation and the filters')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: WARNING)')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    filters = FILTER_NAMES if args.filter == 'all' else (args.filter,)
    scenario = ScenarioParameters(num_steps=args.steps, dt=args.dt, seed=args.seed)
    particle_params = FastSlamParameters.from_dict({
        'num_particles': args.particles,
        'resampling_scheme': args.scheme,
        'seed': args.seed
    })

    try:
        run_simulation(filters, scenario, particle_params)
    except Exception as e:
        print(f"\nSimulation error: {e}")
        raise


if __name__ == "__main__":
    main()
