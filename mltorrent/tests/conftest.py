"""
MLTorrent Test Configuration

Fixtures and common test utilities for all test modules.
"""

import pytest
import numpy as np

from mltorrent.synthetic.generator import DataGenerator, Dataset
from mltorrent.federation.orchestrator import TorrentConfig


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(seed=42)


@pytest.fixture
def train_data(rng):
    """Default noisy training set."""
    return DataGenerator().generate(1000, rng)


@pytest.fixture
def tiny_dataset():
    """Four hand-placed points, two per class."""
    return Dataset(
        features=np.array([[2.0, 2.0], [3.0, 1.0], [-2.0, -1.0], [-1.0, -3.0]]),
        labels=np.array([1, 1, 0, 0]),
    )


@pytest.fixture
def fast_config():
    """Small, seeded configuration with a short tick for lifecycle tests."""
    config = TorrentConfig(seed=123, tick_seconds=0.005, max_epochs=200)
    config.data.train_size = 200
    config.data.test_size = 50
    return config
