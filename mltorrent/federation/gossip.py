"""
Gossip synchronisation of peer models toward the global consensus.

After each aggregation, every active peer independently decides whether to
pull the global model this round. A peer that pulls blends its local
parameters with the global ones; it is never overwritten outright, so local
personalisation survives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .model import ModelParameters
from .peer import PeerSimulator

logger = logging.getLogger(__name__)


@dataclass
class GossipConfig:
    """Configuration for GossipSync."""
    participation_probability: float = 0.7
    blend_factor: float = 0.3             # Weight given to the global model


def blend_parameters(local: ModelParameters, global_params: ModelParameters, beta: float) -> ModelParameters:
    """Return ``local * (1 - beta) + global * beta``."""
    blended = local.as_vector() * (1.0 - beta) + global_params.as_vector() * beta
    return ModelParameters.from_vector(blended)


def draw_gossip_participants(count: int, rng: np.random.Generator, probability: float) -> np.ndarray:
    """Boolean mask of which of ``count`` active peers pull this round."""
    return rng.random(count) < probability


class GossipSync:
    """
    Probabilistic partial pull of peer parameters toward the global model.
    """

    def __init__(self, config: Optional[GossipConfig] = None):
        """
        Initialize gossip sync.

        Args:
            config: Gossip configuration
        """
        self.config = config or GossipConfig()
        if not 0.0 <= self.config.blend_factor <= 1.0:
            raise ValueError(f"blend_factor must lie in [0, 1], got {self.config.blend_factor}")

    def run(
        self,
        peers: Sequence[PeerSimulator],
        global_params: ModelParameters,
        rng: np.random.Generator,
    ) -> List[int]:
        """
        Run one gossip round over ``peers``.

        Args:
            peers: Peers eligible this round (the active set).
            global_params: Freshly aggregated global parameters.
            rng: Random source for participation draws.

        Returns:
            Ids of the peers that blended.
        """
        cfg = self.config
        mask = draw_gossip_participants(len(peers), rng, cfg.participation_probability)
        synced = []
        for peer, pulls in zip(peers, mask):
            if not pulls:
                continue
            peer.load_parameters(blend_parameters(peer.parameters(), global_params, cfg.blend_factor))
            synced.append(peer.peer_id)
        logger.debug("Gossip: %d/%d peers blended toward global", len(synced), len(peers))
        return synced
