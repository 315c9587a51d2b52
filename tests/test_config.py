import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from robo_estimation.config import (FastSlamParameters, KalmanParameters, NoiseParameters,
                                    ParticleFilterParameters)
from robo_estimation.filters import ResamplingScheme


class TestNoiseParameters:
    """Test noise covariance configuration"""

    def test_from_std_builds_diagonal_covariances(self):
        """Test standard deviations are squared onto the diagonal"""
        noise = NoiseParameters.from_std([0.1, 0.2, 0.05], [0.5, 0.01])

        np.testing.assert_allclose(noise.process_noise, np.diag([0.01, 0.04, 0.0025]))
        np.testing.assert_allclose(noise.measurement_noise, np.diag([0.25, 0.0001]))
        assert noise.state_dim == 3
        assert noise.measurement_dim == 2

    def test_nonpositive_std_is_rejected(self):
        """Test standard deviations must be positive"""
        with pytest.raises(ValueError, match="positive"):
            NoiseParameters.from_std([0.1, 0.0], [0.1])

    @pytest.mark.parametrize("matrix", [
        np.ones((2, 3)),
        [[1.0, 0.5], [0.0, 1.0]],
        [[1.0, 0.0], [0.0, np.inf]],
    ])
    def test_invalid_matrices_are_rejected(self, matrix):
        """Test non-square, asymmetric or non-finite matrices are rejected"""
        with pytest.raises(ValueError):
            NoiseParameters(matrix, np.eye(2))

    def test_scalars_become_matrices(self):
        """Test 1-D systems can be configured with scalars"""
        noise = NoiseParameters(0.5, 2.0)
        assert noise.process_noise.shape == (1, 1)
        assert noise.measurement_dim == 1


class TestParticleFilterParameters:
    """Test particle filter configuration"""

    def test_defaults(self):
        """Test default particle count and scheme"""
        params = ParticleFilterParameters()

        assert params.num_particles == 500
        assert params.resampling_scheme is ResamplingScheme.SYSTEMATIC
        assert params.seed is None

    def test_scheme_string_is_parsed(self):
        """Test scheme names are converted to the enum"""
        assert ParticleFilterParameters(resampling_scheme="iid").resampling_scheme is ResamplingScheme.IID

    def test_invalid_values_are_rejected(self):
        """Test particle count, scheme and seed are validated"""
        with pytest.raises(ValueError, match="particles"):
            ParticleFilterParameters(num_particles=0)
        with pytest.raises(ValueError, match="particles"):
            ParticleFilterParameters(num_particles=2.5)
        with pytest.raises(ValueError, match="resampling scheme"):
            ParticleFilterParameters(resampling_scheme="residual")
        with pytest.raises(ValueError, match="Seed"):
            ParticleFilterParameters(seed=-1)

    def test_seeded_generators_repeat(self):
        """Test make_rng returns identically seeded generators"""
        params = ParticleFilterParameters(seed=9)
        np.testing.assert_array_equal(params.make_rng().random(5), params.make_rng().random(5))

    def test_from_dict_ignores_unknown_keys(self):
        """Test flat option mappings can be passed directly"""
        params = ParticleFilterParameters.from_dict({'num_particles': 50, 'seed': 3, 'steps': 100})

        assert params.num_particles == 50
        assert params.seed == 3


class TestFastSlamParameters:
    """Test FastSLAM configuration"""

    def test_inherits_particle_parameters(self):
        """Test FastSLAM parameters extend the particle parameters"""
        params = FastSlamParameters.from_dict({'num_particles': 30, 'resampling_scheme': 'stratified',
                                               'log_odds_hit': 0.7})

        assert isinstance(params, FastSlamParameters)
        assert params.num_particles == 30
        assert params.resampling_scheme is ResamplingScheme.STRATIFIED
        assert params.log_odds_hit == 0.7
        assert params.new_feature_weight == 1.0

    def test_new_feature_weight_must_be_positive(self):
        """Test the new feature factor is validated"""
        with pytest.raises(ValueError, match="New feature weight"):
            FastSlamParameters(new_feature_weight=-1.0)


class TestKalmanParameters:
    """Test EKF configuration"""

    def test_defaults(self):
        """Test default numerical safeguards"""
        params = KalmanParameters()

        assert params.max_condition_number == 1e12
        assert params.divergence_threshold == 1e6
        np.testing.assert_allclose(params.initial_covariance, np.eye(3) * 0.1)

    def test_invalid_values_are_rejected(self):
        """Test thresholds and initial covariance are validated"""
        with pytest.raises(ValueError, match="condition number"):
            KalmanParameters(max_condition_number=0.5)
        with pytest.raises(ValueError, match="Divergence threshold"):
            KalmanParameters(divergence_threshold=0.0)
        with pytest.raises(ValueError, match="Initial covariance"):
            KalmanParameters(initial_covariance=[[1.0, 2.0], [0.0, 1.0]])

    def test_from_dict(self):
        """Test construction from a flat mapping"""
        params = KalmanParameters.from_dict({'divergence_threshold': 50.0, 'num_particles': 10})
        assert params.divergence_threshold == 50.0


if __name__ == "__main__":
    pytest.main([__file__])
