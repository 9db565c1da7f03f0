"""
Contribution-weighted federated averaging.

The aggregator is the only writer of the global model. Each call to
``aggregate`` replaces the global parameters wholesale with the weighted mean
of the supplied peer parameters.
"""

from __future__ import annotations

import logging
from typing import Sequence, Tuple

import numpy as np

from .model import ModelParameters

logger = logging.getLogger(__name__)


def normalize_contributions(contributions: Sequence[float]) -> np.ndarray:
    """
    Scale contribution weights so they sum to one.

    Raises:
        ValueError: If the weights are empty or do not have a positive sum.
    """
    weights = np.asarray(contributions, dtype=np.float64)
    if weights.size == 0:
        raise ValueError("No contributions supplied")
    total = float(np.sum(weights))
    if total <= 0:
        raise ValueError(f"Contribution weights must have a positive sum, got {total}")
    return weights / total


class FederatedAggregator:
    """
    Holds the global model and folds peer updates into it.
    """

    def __init__(self, initial: ModelParameters):
        """
        Initialize the aggregator.

        Args:
            initial: Starting global parameters; copied on entry.
        """
        self._global = initial.copy()
        self._rounds = 0

    @property
    def global_parameters(self) -> ModelParameters:
        """Copy of the current global parameters."""
        return self._global.copy()

    @property
    def rounds(self) -> int:
        """Number of aggregations that changed the global model."""
        return self._rounds

    def aggregate(
        self,
        updates: Sequence[Tuple[ModelParameters, float]],
    ) -> Tuple[ModelParameters, dict]:
        """
        Install the weighted average of ``updates`` as the new global model.

        Args:
            updates: ``(parameters, contribution_weight)`` for each active peer.

        Returns:
            A tuple containing:
            - A copy of the global parameters after the call.
            - Metadata (participant count, normalised weights).

            An empty ``updates`` leaves the global model untouched.
        """
        meta: dict = {"participants": len(updates)}
        if not updates:
            logger.warning("No active peers to aggregate; global model unchanged")
            meta["skipped"] = True
            return self.global_parameters, meta

        array = np.stack([params.as_vector() for params, _ in updates], axis=0)
        weights = normalize_contributions([weight for _, weight in updates])
        if len(updates) == 1:
            # Weighted mean of one row is the row itself.
            aggregate = array[0].copy()
        else:
            aggregate = np.sum(array * weights[:, None], axis=0)

        self._global = ModelParameters.from_vector(aggregate)
        self._rounds += 1
        meta["weights"] = weights.tolist()
        logger.debug("Aggregated %d peers with weights %s", len(updates), np.round(weights, 4).tolist())
        return self.global_parameters, meta
