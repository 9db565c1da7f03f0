"""
MLTorrent: federated learning simulated over an ad-hoc peer network.
"""

__version__ = "0.1.0"

from .federation import TorrentConfig, TrainingOrchestrator, OrchestratorState
from .analytics import StatsAnalyzer, RunStats

__all__ = [
    "TorrentConfig",
    "TrainingOrchestrator",
    "OrchestratorState",
    "StatsAnalyzer",
    "RunStats",
]
