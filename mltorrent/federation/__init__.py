"""
Federated learning layer for MLTorrent.

Exposes the local model, the simulated peers, contribution-weighted
aggregation, gossip synchronisation, synthetic network telemetry, and the
round-based orchestrator that ties them together.
"""

from .model import ModelParameters, ModelConfig, LocalModel, sigmoid
from .peer import (
    InvalidConfiguration,
    PeerStatus,
    PeerConfig,
    PeerSnapshot,
    PeerSimulator,
    partition_indices,
    partition_dataset,
    draw_status_flips,
    next_status,
    build_peers,
)
from .aggregator import FederatedAggregator, normalize_contributions
from .gossip import GossipConfig, GossipSync, blend_parameters, draw_gossip_participants
from .network import (
    EventKind,
    NetworkEvent,
    NetworkActivityConfig,
    NetworkActivityLog,
    TransferTotals,
    draw_network_events,
)
from .orchestrator import (
    TorrentConfig,
    OrchestratorState,
    OrchestratorSnapshot,
    OrchestratorStateError,
    TrainingOrchestrator,
    clamp_max_epochs,
)

__all__ = [
    # Model
    "ModelParameters",
    "ModelConfig",
    "LocalModel",
    "sigmoid",
    # Peers
    "InvalidConfiguration",
    "PeerStatus",
    "PeerConfig",
    "PeerSnapshot",
    "PeerSimulator",
    "partition_indices",
    "partition_dataset",
    "draw_status_flips",
    "next_status",
    "build_peers",
    # Aggregation and gossip
    "FederatedAggregator",
    "normalize_contributions",
    "GossipConfig",
    "GossipSync",
    "blend_parameters",
    "draw_gossip_participants",
    # Telemetry
    "EventKind",
    "NetworkEvent",
    "NetworkActivityConfig",
    "NetworkActivityLog",
    "TransferTotals",
    "draw_network_events",
    # Orchestration
    "TorrentConfig",
    "OrchestratorState",
    "OrchestratorSnapshot",
    "OrchestratorStateError",
    "TrainingOrchestrator",
    "clamp_max_epochs",
]
