import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from robo_estimation.main import main, parse_args
from robo_estimation.simulation import LandmarkWorld, ScenarioParameters, landmark_rmse, position_rmse


class TestScenarioParameters:
    """Test scenario parameter validation"""

    def test_defaults_and_noise_matrices(self):
        """Test default noise covariances follow the standard deviations"""
        params = ScenarioParameters()

        np.testing.assert_allclose(params.measurement_noise, np.diag([0.1 ** 2, 0.02 ** 2]))
        np.testing.assert_allclose(params.control_noise, np.diag([0.05 ** 2, 0.02 ** 2]))

    @pytest.mark.parametrize("kwargs", [
        {'num_steps': 0},
        {'dt': 0.0},
        {'num_landmarks': -1},
        {'sensor_range': 0.0},
        {'range_noise_std': -0.1},
        {'weave_period': 0.0},
    ])
    def test_invalid_parameters(self, kwargs):
        """Test invalid scenario settings are rejected"""
        with pytest.raises(ValueError):
            ScenarioParameters(**kwargs)


class TestLandmarkWorld:
    """Test the simulated landmark world"""

    def test_run_produces_one_step_per_time_step(self, landmark_world):
        """Test step count, timing and data shapes"""
        world, steps, truth = landmark_world

        assert len(steps) == 100
        assert steps[0].time == pytest.approx(0.1)
        assert steps[-1].time == pytest.approx(10.0)
        assert truth.shape == (100, 3)
        assert all(step.control.shape == (2,) for step in steps)

    def test_observations_respect_sensor_range(self, landmark_world):
        """Test only landmarks within range are observed, tagged by identifier"""
        world, steps, _ = landmark_world
        for step in steps:
            for identifier, z in step.observations:
                assert identifier in world.landmarks
                true_range = np.linalg.norm(world.landmarks[identifier] - step.true_pose[:2])
                assert true_range <= world.params.sensor_range
                assert -np.pi <= z[1] < np.pi

    def test_noise_free_observations_are_exact(self):
        """Test zero noise reproduces the measurement model"""
        params = ScenarioParameters(num_steps=5, range_noise_std=0.0, bearing_noise_std=0.0,
                                    velocity_noise_std=0.0, yaw_rate_noise_std=0.0, seed=1)
        world = LandmarkWorld(params, landmarks={0: [3.0, 4.0]})
        steps = world.run()

        for step in steps:
            identifier, z = step.observations[0]
            assert identifier == 0
            np.testing.assert_allclose(z, world.measurement_model.predict(step.true_pose, [3.0, 4.0]))
            np.testing.assert_allclose(step.control, world.commanded_control(step.time))

    def test_seeded_worlds_repeat(self):
        """Test the seed fixes landmarks and noise"""
        first = LandmarkWorld(ScenarioParameters(num_steps=10, seed=3))
        second = LandmarkWorld(ScenarioParameters(num_steps=10, seed=3))

        for identifier in first.landmarks:
            np.testing.assert_array_equal(first.landmarks[identifier], second.landmarks[identifier])
        for a, b in zip(first.run(), second.run()):
            np.testing.assert_array_equal(a.control, b.control)


class TestMetrics:
    """Test accuracy metrics"""

    def test_position_rmse(self):
        """Test RMSE over planar positions ignores heading"""
        estimated = np.array([[0.0, 0.0, 1.0], [3.0, 4.0, 0.0]])
        truth = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 0.0]])

        assert position_rmse(estimated, truth) == pytest.approx(np.sqrt(12.5))

    def test_position_rmse_length_mismatch(self):
        """Test trajectories must have equal length"""
        with pytest.raises(ValueError, match="lengths"):
            position_rmse(np.zeros((3, 3)), np.zeros((2, 3)))

    def test_landmark_rmse(self):
        """Test only landmarks present in both maps are compared"""
        estimated = {0: np.array([1.0, 0.0]), 5: np.array([9.0, 9.0])}
        truth = {0: np.array([0.0, 0.0]), 1: np.array([2.0, 2.0])}

        assert landmark_rmse(estimated, truth) == pytest.approx(1.0)
        assert np.isnan(landmark_rmse({}, truth))


class TestCommandLine:
    """Test the demo entry point"""

    def test_parse_args_defaults(self):
        """Test default options"""
        args = parse_args([])

        assert args.filter == 'all'
        assert args.particles == 500
        assert args.scheme == 'systematic'

    def test_invalid_scheme_is_rejected(self):
        """Test argparse restricts the scheme choices"""
        with pytest.raises(SystemExit):
            parse_args(['--scheme', 'residual'])

    @pytest.mark.parametrize("filter_name", ['ekf', 'pf', 'fastslam'])
    def test_demo_runs(self, filter_name, capsys):
        """Test each estimator runs end to end and reports its error"""
        main(['--filter', filter_name, '--steps', '30', '--particles', '50', '--seed', '2'])

        output = capsys.readouterr().out
        assert 'position RMSE' in output
        if filter_name == 'fastslam':
            assert 'landmark RMSE' in output


if __name__ == "__main__":
    pytest.main([__file__])
