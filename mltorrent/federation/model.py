"""
Two-feature logistic classifier trained by full-batch gradient steps.

Each peer owns one ``LocalModel``; parameters cross ownership boundaries only
as ``ModelParameters`` copies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from mltorrent.synthetic.generator import Dataset

LOSS_EPSILON = 1e-15


def sigmoid(logits: np.ndarray) -> np.ndarray:
    """Logistic function; logits are clipped to keep ``exp`` finite."""
    return 1.0 / (1.0 + np.exp(-np.clip(logits, -500.0, 500.0)))


@dataclass(eq=False)
class ModelParameters:
    """Weights ``[w1, w2]`` and bias of a linear classifier."""
    weights: np.ndarray
    bias: float

    def __post_init__(self) -> None:
        self.weights = np.array(self.weights, dtype=np.float64).reshape(2)
        self.bias = float(self.bias)

    def copy(self) -> "ModelParameters":
        return ModelParameters(self.weights.copy(), self.bias)

    def as_vector(self) -> np.ndarray:
        """Flatten to ``[w1, w2, b]``."""
        return np.array([self.weights[0], self.weights[1], self.bias], dtype=np.float64)

    @classmethod
    def from_vector(cls, vector: Sequence[float]) -> "ModelParameters":
        vec = np.asarray(vector, dtype=np.float64).reshape(3)
        return cls(vec[:2].copy(), float(vec[2]))

    def allclose(self, other: "ModelParameters", atol: float = 1e-12) -> bool:
        return bool(np.allclose(self.as_vector(), other.as_vector(), rtol=0.0, atol=atol))


@dataclass
class ModelConfig:
    """Configuration for LocalModel."""
    learning_rate: float = 0.01
    init_scale: float = 0.5               # Parameters start in U[-scale, scale]


class LocalModel:
    """
    Logistic regression over ``(x1, x2)``.

    ``train`` performs exactly one full-batch gradient ascent step on the
    log-likelihood; callers decide how many rounds to run.
    """

    def __init__(self, rng: np.random.Generator, config: Optional[ModelConfig] = None):
        """
        Initialize the model with random parameters.

        Args:
            rng: Random source for the initial weights and bias.
            config: Model configuration.
        """
        self.config = config or ModelConfig()
        scale = self.config.init_scale
        self._weights = rng.uniform(-scale, scale, size=2)
        self._bias = float(rng.uniform(-scale, scale))

    def predict(self, x1: float, x2: float) -> float:
        """Probability that ``(x1, x2)`` belongs to class 1."""
        logit = self._weights[0] * x1 + self._weights[1] * x2 + self._bias
        return float(sigmoid(np.asarray(logit)))

    def predict_proba(self, features: np.ndarray) -> np.ndarray:
        return sigmoid(features @ self._weights + self._bias)

    def train(self, data: Dataset, learning_rate: Optional[float] = None) -> np.ndarray:
        """
        Apply one full-batch gradient step over ``data``.

        Args:
            data: Samples to fit.
            learning_rate: Step size; defaults to the configured rate.

        Returns:
            The accumulated gradient ``[g_w1, g_w2, g_b]`` before scaling.
        """
        lr = self.config.learning_rate if learning_rate is None else learning_rate
        n = len(data)
        if n == 0:
            return np.zeros(3)

        errors = data.labels - self.predict_proba(data.features)
        gradient = np.array([
            float(np.sum(errors * data.features[:, 0])),
            float(np.sum(errors * data.features[:, 1])),
            float(np.sum(errors)),
        ])

        self._weights = self._weights + lr * gradient[:2] / n
        self._bias = self._bias + lr * gradient[2] / n
        return gradient

    def evaluate(self, data: Dataset) -> Dict[str, float]:
        """
        Score the model on ``data``.

        Returns:
            ``{"accuracy": ..., "loss": ...}`` where loss is the mean binary
            cross-entropy. Empty data scores zero on both.
        """
        if len(data) == 0:
            return {"accuracy": 0.0, "loss": 0.0}

        probs = self.predict_proba(data.features)
        labels = data.labels
        accuracy = float(np.mean((probs > 0.5).astype(np.int64) == labels))
        log_likelihood = (
            labels * np.log(probs + LOSS_EPSILON)
            + (1 - labels) * np.log(1.0 - probs + LOSS_EPSILON)
        )
        # log(1 + eps) is marginally positive when a prediction saturates.
        loss = max(float(-np.mean(log_likelihood)), 0.0)
        return {"accuracy": accuracy, "loss": loss}

    def get_parameters(self) -> ModelParameters:
        return ModelParameters(self._weights.copy(), self._bias)

    def set_parameters(self, params: ModelParameters) -> None:
        self._weights = np.array(params.weights, dtype=np.float64).copy()
        self._bias = float(params.bias)
