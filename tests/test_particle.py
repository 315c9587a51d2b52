import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from robo_estimation.exceptions import DistributionError
from robo_estimation.filters import (FilterState, ParticleFilter, ParticleFilterKnownCorrespondences,
                                     ResamplingScheme)
from robo_estimation.models import (LinearMeasurementModel, LinearMotionModel, RangeBearingModel,
                                    RelativePositionModel, UnicycleMotionModel)
from robo_estimation.simulation import position_rmse
from robo_estimation.utils import GaussianState


class ConstantMeasurementModel:
    """Measurement that does not depend on the state, so every particle scores the same"""

    def predict(self, state, landmark=None):
        return np.zeros(1)

    def jacobian(self, state, landmark=None):
        return np.zeros((1, len(state)))


LANDMARKS = {0: np.array([5.0, 0.0]), 1: np.array([0.0, 5.0]), 2: np.array([-4.0, -4.0])}


def known_map_filter(seed, num_particles=200):
    return ParticleFilterKnownCorrespondences(
        np.diag([0.05, 0.05, 0.01]), np.eye(2) * 0.1, LANDMARKS,
        RelativePositionModel(), UnicycleMotionModel(),
        GaussianState(np.zeros(3), np.eye(3)), num_particles,
        ResamplingScheme.SYSTEMATIC, np.random.default_rng(seed), initial_noise=np.eye(3))


class TestParticleFilter:
    """Test Monte Carlo Localization with untagged measurements"""

    def make_filter(self, rng, num_particles=100, scheme="systematic"):
        return ParticleFilter(np.eye(2) * 0.1, np.eye(2) * 0.5,
                              LinearMeasurementModel(np.eye(2)), LinearMotionModel(np.eye(2), np.eye(2)),
                              GaussianState(np.zeros(2), np.eye(2)), num_particles, scheme, rng)

    def test_initialization(self, rng):
        """Test particles are drawn around the initial mean"""
        pf = self.make_filter(rng, num_particles=2000)

        assert pf.num_particles == 2000
        assert pf.particles.shape == (2000, 2)
        np.testing.assert_allclose(pf.gaussian_estimate().mean, [0.0, 0.0], atol=0.05)
        np.testing.assert_allclose(pf.gaussian_estimate().covariance, np.eye(2) * 0.1, atol=0.02)

    def test_initial_noise_overrides_spread(self, rng):
        """Test the initial spread can differ from the process noise"""
        pf = ParticleFilter(np.eye(2) * 0.1, np.eye(2), LinearMeasurementModel(np.eye(2)),
                            LinearMotionModel(np.eye(2)), GaussianState(np.ones(2), np.eye(2)),
                            2000, rng=rng, initial_noise=np.eye(2) * 4.0)

        np.testing.assert_allclose(np.diag(pf.gaussian_estimate().covariance), [4.0, 4.0], rtol=0.15)

    def test_no_control_no_measurement_is_noop(self, rng):
        """Test control None and measurements None leave the particles untouched"""
        pf = self.make_filter(rng)
        before = pf.particles
        pf.update_estimate(None, None, dt=0.1)

        np.testing.assert_array_equal(pf.particles, before)

    def test_skipped_prediction_consumes_no_randomness(self):
        """Test a no-op step does not advance the generator"""
        idle = self.make_filter(np.random.default_rng(1))
        busy = self.make_filter(np.random.default_rng(1))

        idle.update_estimate(None, None, dt=0.1)
        idle.update_estimate(np.array([1.0, 0.0]), None, dt=0.1)
        busy.update_estimate(np.array([1.0, 0.0]), None, dt=0.1)

        np.testing.assert_array_equal(idle.particles, busy.particles)

    def test_prediction_moves_particles(self, rng):
        """Test prediction applies the motion model plus process noise"""
        pf = self.make_filter(rng, num_particles=2000)
        pf.update_estimate(np.array([3.0, -1.0]), None, dt=0.1)

        estimate = pf.gaussian_estimate()
        np.testing.assert_allclose(estimate.mean, [3.0, -1.0], atol=0.1)
        np.testing.assert_allclose(np.diag(estimate.covariance), [0.2, 0.2], atol=0.04)
        diagnostics = pf.get_diagnostics()
        assert diagnostics.prediction_count == 1
        assert diagnostics.update_count == 0
        assert diagnostics.effective_sample_size is None

    def test_uniform_weights_preserve_particles(self, rng):
        """Test equal likelihoods with systematic resampling keep the set unchanged"""
        pf = ParticleFilter(np.eye(2) * 0.1, np.eye(1), ConstantMeasurementModel(),
                            LinearMotionModel(np.eye(2)), GaussianState(np.zeros(2), np.eye(2)),
                            64, ResamplingScheme.SYSTEMATIC, rng)
        before = pf.gaussian_estimate()
        pf.update_estimate(None, [np.array([0.3])], dt=0.1)
        after = pf.gaussian_estimate()

        np.testing.assert_allclose(after.mean, before.mean)
        np.testing.assert_allclose(after.covariance, before.covariance)
        assert pf.get_diagnostics().effective_sample_size == pytest.approx(64)

    def test_extreme_measurement_collapses_without_underflow(self, rng):
        """Test an extremely unlikely measurement still selects the best particle"""
        pf = ParticleFilter(np.eye(1), np.eye(1) * 1e-4, LinearMeasurementModel([[1.0]]),
                            LinearMotionModel([[1.0]]), GaussianState([0.0], [[1.0]]), 50,
                            ResamplingScheme.SYSTEMATIC, rng)
        best = pf.particles.max()
        pf.update_estimate(None, [np.array([50.0])], dt=0.1)

        np.testing.assert_array_equal(pf.particles, np.full((50, 1), best))
        np.testing.assert_allclose(pf.gaussian_estimate().covariance, [[0.0]], atol=1e-20)
        assert pf.get_diagnostics().filter_state == FilterState.DEGENERATE

    @pytest.mark.parametrize("scheme", list(ResamplingScheme))
    def test_measurement_concentrates_belief(self, scheme, rng):
        """Test a precise measurement pulls the cloud towards it for every scheme"""
        pf = ParticleFilter(np.eye(2), np.eye(2) * 0.05, LinearMeasurementModel(np.eye(2)),
                            LinearMotionModel(np.eye(2)), GaussianState(np.zeros(2), np.eye(2)),
                            1000, scheme, rng)
        pf.update_estimate(None, [np.array([0.5, -0.5])], dt=0.1)

        estimate = pf.gaussian_estimate()
        np.testing.assert_allclose(estimate.mean, [0.5 / 1.05, -0.5 / 1.05], atol=0.1)
        assert np.trace(estimate.covariance) < 0.5

    def test_array_batch_matches_list_batch(self):
        """Test a (K, Z) measurement array weights the particles like a list"""
        batch = np.array([[1.0, 1.0], [1.0, 1.1]])
        from_array = self.make_filter(np.random.default_rng(21))
        from_list = self.make_filter(np.random.default_rng(21))

        from_array.update_estimate(None, batch, dt=0.1)
        from_list.update_estimate(None, list(batch), dt=0.1)

        np.testing.assert_array_equal(from_array.particles, from_list.particles)
        assert from_array.get_diagnostics().update_count == 1

    def test_gaussian_estimate_is_pure(self, rng):
        """Test repeated estimates agree and do not alter the particles"""
        pf = self.make_filter(rng)
        pf.update_estimate(np.array([1.0, 1.0]), [np.array([1.0, 1.2])], dt=0.1)
        before = pf.particles

        first = pf.gaussian_estimate()
        second = pf.gaussian_estimate()

        np.testing.assert_array_equal(first.mean, second.mean)
        np.testing.assert_array_equal(first.covariance, second.covariance)
        np.testing.assert_array_equal(pf.particles, before)

    def test_particles_property_returns_copy(self, rng):
        """Test callers cannot mutate the particle set through the accessor"""
        pf = self.make_filter(rng)
        particles = pf.particles
        particles[:] = 1e6

        assert not np.any(pf.particles == 1e6)

    def test_seeded_filters_are_reproducible(self):
        """Test identical seeds and inputs give identical particle sets"""
        first = self.make_filter(np.random.default_rng(8))
        second = self.make_filter(np.random.default_rng(8))
        for k in range(5):
            u, z = np.array([0.1 * k, 0.2]), [np.array([0.1 * k, 0.2 * k])]
            first.update_estimate(u, z, dt=0.1)
            second.update_estimate(u, z, dt=0.1)

        np.testing.assert_array_equal(first.particles, second.particles)

    def test_scheme_is_parsed_from_string(self, rng):
        """Test the resampling scheme can be named"""
        assert self.make_filter(rng, scheme="stratified").resampling_scheme is ResamplingScheme.STRATIFIED

    def test_invalid_construction(self, rng):
        """Test particle count and noise matrices are validated"""
        with pytest.raises(ValueError, match="particles"):
            self.make_filter(rng, num_particles=0)
        with pytest.raises(DistributionError):
            ParticleFilter(np.array([[1.0, 0.0], [0.0, -1.0]]), np.eye(2), LinearMeasurementModel(np.eye(2)),
                           LinearMotionModel(np.eye(2)), GaussianState(np.zeros(2), np.eye(2)), 10, rng=rng)


class TestParticleFilterKnownCorrespondences:
    """Test Monte Carlo Localization against a landmark map"""

    def test_unknown_identifiers_do_not_change_the_result(self):
        """Test a batch with an extra unknown identifier equals the batch without it"""
        with_unknown = known_map_filter(seed=21)
        without_unknown = known_map_filter(seed=21)
        control = np.array([1.0, 0.1])
        z = np.array([4.0, 0.1])

        with_unknown.update_estimate(control, [(0, z), (42, np.array([1.0, 1.0]))], dt=0.1)
        without_unknown.update_estimate(control, [(0, z)], dt=0.1)

        np.testing.assert_array_equal(with_unknown.particles, without_unknown.particles)

    def test_only_unknown_identifiers_skip_resampling(self):
        """Test a batch of unknown identifiers behaves like no measurement"""
        unknown = known_map_filter(seed=5)
        empty = known_map_filter(seed=5)

        unknown.update_estimate(np.array([1.0, 0.0]), [(42, np.array([1.0, 1.0]))], dt=0.1)
        empty.update_estimate(np.array([1.0, 0.0]), None, dt=0.1)

        np.testing.assert_array_equal(unknown.particles, empty.particles)
        assert unknown.get_diagnostics().update_count == 0

    def test_landmark_sightings_localize(self):
        """Test sightings of two landmarks locate the robot"""
        pf = known_map_filter(seed=2, num_particles=2000)
        true_position = np.array([0.4, -0.3])
        observations = [(identifier, LANDMARKS[identifier] - true_position) for identifier in (0, 1)]

        pf.update_estimate(None, observations, dt=0.1)

        np.testing.assert_allclose(pf.gaussian_estimate().mean[:2], true_position, atol=0.15)

    def test_range_bearing_tracking(self, landmark_world):
        """Test MCL on a simulated range-bearing run"""
        world, steps, truth = landmark_world
        pf = ParticleFilterKnownCorrespondences(
            np.diag([0.02, 0.02, 0.01]) ** 2, world.params.measurement_noise, world.landmarks,
            RangeBearingModel(), UnicycleMotionModel(),
            GaussianState(world.initial_pose, np.eye(3) * 0.01), 300,
            ResamplingScheme.SYSTEMATIC, np.random.default_rng(3))

        estimates = []
        for step in steps:
            pf.update_estimate(step.control, step.observations, world.params.dt)
            estimates.append(pf.gaussian_estimate().mean)

        assert position_rmse(np.array(estimates), truth) < 0.5
        assert pf.get_diagnostics().effective_sample_size > 0


if __name__ == "__main__":
    pytest.main([__file__])
