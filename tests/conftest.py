import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from robo_estimation.simulation import LandmarkWorld, ScenarioParameters


@pytest.fixture
def rng():
    """Seeded generator so that stochastic tests are reproducible"""
    return np.random.default_rng(12345)


@pytest.fixture
def landmark_world():
    """Short simulated run among landmarks: (world, steps, true poses)"""
    world = LandmarkWorld(ScenarioParameters(num_steps=100, dt=0.1, num_landmarks=8, seed=7))
    steps = world.run()
    truth = np.array([step.true_pose for step in steps])
    return world, steps, truth
