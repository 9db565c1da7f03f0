"""
Run history and derived statistics for MLTorrent simulations.
"""

from .history import RoundRecord, HistoryRecorder, RunStats, Convergence, StatsAnalyzer

__all__ = [
    "RoundRecord",
    "HistoryRecorder",
    "RunStats",
    "Convergence",
    "StatsAnalyzer",
]
