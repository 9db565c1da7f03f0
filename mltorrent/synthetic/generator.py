"""
Synthetic two-feature classification data.

Samples are drawn uniformly from a square and labelled by which side of the
line ``x1 + x2 = 0`` they fall on, with a small uniform label noise. A
noise-free variant with an excluded margin band is provided for convergence
benchmarks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np


@dataclass(frozen=True)
class Sample:
    """A single labelled point."""
    x1: float
    x2: float
    label: int


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Immutable columnar container of samples.

    ``features`` has shape ``(n, 2)`` and ``labels`` shape ``(n,)``. Arrays are
    marked read-only so shards handed to peers cannot be mutated in place.
    """
    features: np.ndarray
    labels: np.ndarray

    def __post_init__(self) -> None:
        features = np.array(self.features, dtype=np.float64).reshape(-1, 2)
        labels = np.array(self.labels, dtype=np.int64).reshape(-1)
        if features.shape[0] != labels.shape[0]:
            raise ValueError("features and labels must have the same length")
        features.setflags(write=False)
        labels.setflags(write=False)
        object.__setattr__(self, "features", features)
        object.__setattr__(self, "labels", labels)

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    def __iter__(self) -> Iterator[Sample]:
        for (x1, x2), label in zip(self.features, self.labels):
            yield Sample(float(x1), float(x2), int(label))

    def subset(self, start: int, stop: int) -> "Dataset":
        """Return the contiguous slice ``[start, stop)`` as a new dataset."""
        return Dataset(self.features[start:stop].copy(), self.labels[start:stop].copy())

    @classmethod
    def from_samples(cls, samples) -> "Dataset":
        samples = list(samples)
        features = np.array([[s.x1, s.x2] for s in samples], dtype=np.float64).reshape(-1, 2)
        labels = np.array([s.label for s in samples], dtype=np.int64)
        return cls(features, labels)


@dataclass
class DataConfig:
    """Configuration for synthetic data generation."""
    train_size: int = 1000
    test_size: int = 200
    feature_low: float = -5.0
    feature_high: float = 5.0
    label_noise: float = 0.25             # Half-width of the uniform noise term


class DataGenerator:
    """
    Draws noisy linearly separable samples.

    ``label = 1 if x1 + x2 + noise > 0 else 0`` with ``x1, x2`` uniform over
    ``[feature_low, feature_high]`` and ``noise`` uniform over
    ``[-label_noise, label_noise]``.
    """

    def __init__(self, config: Optional[DataConfig] = None):
        self.config = config or DataConfig()

    def generate(self, n: int, rng: np.random.Generator) -> Dataset:
        """
        Generate ``n`` samples.

        Args:
            n: Number of samples.
            rng: Random source; every draw comes from it.

        Returns:
            A dataset of ``n`` samples.
        """
        cfg = self.config
        features = rng.uniform(cfg.feature_low, cfg.feature_high, size=(n, 2))
        noise = rng.uniform(-cfg.label_noise, cfg.label_noise, size=n)
        labels = (features[:, 0] + features[:, 1] + noise > 0).astype(np.int64)
        return Dataset(features, labels)


@dataclass
class MarginDataGenerator:
    """
    Noise-free separable data with an empty band around the boundary.

    Points with ``|x1 + x2| <= margin`` are rejected; the rest are labelled
    ``1`` iff ``x1 + x2 > margin``.
    """
    margin: float = 1.0
    config: DataConfig = field(default_factory=DataConfig)

    def generate(self, n: int, rng: np.random.Generator) -> Dataset:
        cfg = self.config
        chunks = []
        remaining = n
        while remaining > 0:
            # Oversample so a single pass usually suffices.
            batch = rng.uniform(cfg.feature_low, cfg.feature_high, size=(2 * remaining + 8, 2))
            sums = batch[:, 0] + batch[:, 1]
            kept = batch[np.abs(sums) > self.margin][:remaining]
            chunks.append(kept)
            remaining -= kept.shape[0]
        features = np.concatenate(chunks, axis=0) if chunks else np.empty((0, 2))
        labels = (features[:, 0] + features[:, 1] > self.margin).astype(np.int64)
        return Dataset(features, labels)
