"""
Simulated peers holding a data shard and a local model.

A peer trains once per round while ``active``. Its status flips between
``active`` and ``syncing`` at random between rounds; a syncing peer sits out
training, aggregation and gossip until it flips back.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from mltorrent.synthetic.generator import Dataset
from .model import LocalModel, ModelConfig, ModelParameters

logger = logging.getLogger(__name__)

DEFAULT_PEER_NAMES: Tuple[str, ...] = (
    "SmartHome-Berlin",
    "IoT-Munich",
    "EdgeDevice-Hamburg",
    "SmartCity-Frankfurt",
    "Home-Stuttgart",
)


class InvalidConfiguration(ValueError):
    """Raised when the peer network cannot be built from the given settings."""


class PeerStatus(str, Enum):
    """Liveness of a peer."""
    ACTIVE = "active"
    SYNCING = "syncing"


@dataclass
class PeerConfig:
    """Configuration for the simulated peer population."""
    num_peers: int = 5
    names: Tuple[str, ...] = DEFAULT_PEER_NAMES
    contribution_min: float = 0.8
    contribution_max: float = 1.0
    status_flip_probability: float = 0.05
    transfer_rate_min: float = 50.0       # Cosmetic upload/download rates
    transfer_rate_max: float = 150.0


@dataclass(frozen=True)
class PeerSnapshot:
    """Read-only view of a peer for presentation."""
    peer_id: int
    name: str
    shard_size: int
    accuracy: float
    loss: float
    status: PeerStatus
    contribution_weight: float
    upload_speed: float
    download_speed: float
    total_updates: int
    last_update: float


def partition_indices(n_samples: int, n_peers: int) -> List[Tuple[int, int]]:
    """
    Split ``range(n_samples)`` into ``n_peers`` contiguous ``(start, stop)`` bounds.

    Every shard holds ``n_samples // n_peers`` samples except the last, which
    also takes the remainder.

    Raises:
        InvalidConfiguration: If there are no peers or more peers than samples.
    """
    if n_peers < 1:
        raise InvalidConfiguration(f"At least one peer is required, got {n_peers}")
    if n_peers > n_samples:
        raise InvalidConfiguration(
            f"Cannot give {n_peers} peers a non-empty shard of {n_samples} samples"
        )
    shard_size = n_samples // n_peers
    bounds = []
    for i in range(n_peers):
        start = i * shard_size
        stop = n_samples if i == n_peers - 1 else start + shard_size
        bounds.append((start, stop))
    return bounds


def partition_dataset(dataset: Dataset, n_peers: int) -> List[Dataset]:
    """Cut ``dataset`` into the shards described by :func:`partition_indices`."""
    return [dataset.subset(start, stop) for start, stop in partition_indices(len(dataset), n_peers)]


def draw_status_flips(count: int, rng: np.random.Generator, probability: float) -> np.ndarray:
    """Boolean mask of which of ``count`` peers flip status this round."""
    return rng.random(count) < probability


def next_status(status: PeerStatus, flip: bool) -> PeerStatus:
    if not flip:
        return status
    return PeerStatus.SYNCING if status == PeerStatus.ACTIVE else PeerStatus.ACTIVE


class PeerSimulator:
    """
    One simulated participant.

    Owns its shard, its ``LocalModel`` and its liveness and trust metadata.
    Only this object and the gossip step write the model parameters.
    """

    def __init__(
        self,
        peer_id: int,
        name: str,
        shard: Dataset,
        model: LocalModel,
        contribution_weight: float,
        config: Optional[PeerConfig] = None,
        now: Optional[float] = None,
    ):
        if contribution_weight <= 0:
            raise InvalidConfiguration(
                f"Peer {peer_id} needs a positive contribution weight, got {contribution_weight}"
            )
        self.peer_id = peer_id
        self.name = name
        self.shard = shard
        self.model = model
        self.contribution_weight = float(contribution_weight)
        self.config = config or PeerConfig()

        self.status = PeerStatus.ACTIVE
        self.total_updates = 0
        self.last_update = time.time() if now is None else now
        self.upload_speed = 0.0
        self.download_speed = 0.0

        metrics = self.model.evaluate(self.shard)
        self.accuracy = metrics["accuracy"]
        self.loss = metrics["loss"]

    @property
    def is_active(self) -> bool:
        return self.status == PeerStatus.ACTIVE

    def train_round(
        self,
        rng: np.random.Generator,
        learning_rate: Optional[float] = None,
        now: Optional[float] = None,
    ) -> bool:
        """
        Run this round's local step if the peer is active.

        Trains once on the shard, re-evaluates on it, and refreshes the
        synthetic transfer rates.

        Returns:
            True if the peer trained.
        """
        if not self.is_active:
            return False

        self.model.train(self.shard, learning_rate)
        metrics = self.model.evaluate(self.shard)
        self.accuracy = metrics["accuracy"]
        self.loss = metrics["loss"]
        self.total_updates += 1

        cfg = self.config
        self.upload_speed = float(rng.uniform(cfg.transfer_rate_min, cfg.transfer_rate_max))
        self.download_speed = float(rng.uniform(cfg.transfer_rate_min, cfg.transfer_rate_max))
        self.last_update = time.time() if now is None else now
        return True

    def parameters(self) -> ModelParameters:
        return self.model.get_parameters()

    def load_parameters(self, params: ModelParameters) -> None:
        self.model.set_parameters(params)

    def apply_flip(self, flip: bool) -> None:
        previous = self.status
        self.status = next_status(self.status, flip)
        if self.status != previous:
            logger.debug("Peer %s (%s) is now %s", self.peer_id, self.name, self.status.value)

    def snapshot(self) -> PeerSnapshot:
        return PeerSnapshot(
            peer_id=self.peer_id,
            name=self.name,
            shard_size=len(self.shard),
            accuracy=self.accuracy,
            loss=self.loss,
            status=self.status,
            contribution_weight=self.contribution_weight,
            upload_speed=self.upload_speed,
            download_speed=self.download_speed,
            total_updates=self.total_updates,
            last_update=self.last_update,
        )


def _peer_name(config: PeerConfig, index: int) -> str:
    if index < len(config.names):
        return config.names[index]
    return f"Peer-{index + 1}"


def build_peers(
    dataset: Dataset,
    config: PeerConfig,
    model_config: ModelConfig,
    rng: np.random.Generator,
    now: Optional[float] = None,
) -> List[PeerSimulator]:
    """
    Create the peer population over ``dataset``.

    Peers are numbered from 1. Each receives one shard, a freshly initialised
    model, and a contribution weight drawn from the configured range.

    Raises:
        InvalidConfiguration: On an impossible partition or non-positive weights.
    """
    if config.contribution_min <= 0 or config.contribution_max < config.contribution_min:
        raise InvalidConfiguration(
            "Contribution weights must satisfy 0 < min <= max, got "
            f"[{config.contribution_min}, {config.contribution_max}]"
        )
    shards = partition_dataset(dataset, config.num_peers)
    peers = []
    for index, shard in enumerate(shards):
        model = LocalModel(rng, model_config)
        contribution = float(rng.uniform(config.contribution_min, config.contribution_max))
        peers.append(
            PeerSimulator(
                peer_id=index + 1,
                name=_peer_name(config, index),
                shard=shard,
                model=model,
                contribution_weight=contribution,
                config=config,
                now=now,
            )
        )
    logger.debug("Built %d peers over %d samples", len(peers), len(dataset))
    return peers


def active_peers(peers: Sequence[PeerSimulator]) -> List[PeerSimulator]:
    return [peer for peer in peers if peer.is_active]
