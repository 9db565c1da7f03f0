"""
Round history and run summary statistics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class RoundRecord:
    """Global and peer metrics after one round (epoch 0 is pre-training)."""
    epoch: int
    global_accuracy: float
    global_loss: float
    avg_peer_accuracy: float


class HistoryRecorder:
    """
    Append-only ledger of round records.

    Epochs must arrive in order starting at 0 with no gaps.
    """

    def __init__(self) -> None:
        self._records: List[RoundRecord] = []

    def record(
        self,
        epoch: int,
        global_accuracy: float,
        global_loss: float,
        avg_peer_accuracy: float,
    ) -> RoundRecord:
        expected = len(self._records)
        if epoch != expected:
            raise ValueError(f"Expected epoch {expected}, got {epoch}")
        entry = RoundRecord(
            epoch=epoch,
            global_accuracy=float(global_accuracy),
            global_loss=float(global_loss),
            avg_peer_accuracy=float(avg_peer_accuracy),
        )
        self._records.append(entry)
        return entry

    def records(self) -> Tuple[RoundRecord, ...]:
        return tuple(self._records)

    def latest(self) -> Optional[RoundRecord]:
        return self._records[-1] if self._records else None

    def __len__(self) -> int:
        return len(self._records)


class Convergence(str, Enum):
    """Coarse label for the accuracy gained over a run."""
    GOOD = "Good"
    MODERATE = "Moderate"
    LIMITED = "Limited"


@dataclass(frozen=True)
class RunStats:
    """Summary of a run's global accuracy trajectory."""
    initial_accuracy: float
    final_accuracy: float
    improvement: float
    best_accuracy: float
    best_epoch: int
    convergence: Convergence


class StatsAnalyzer:
    """Derives ``RunStats`` from a round history."""

    good_threshold = 0.01
    moderate_threshold = 0.005

    @classmethod
    def classify(cls, improvement: float) -> Convergence:
        if improvement > cls.good_threshold:
            return Convergence.GOOD
        if improvement > cls.moderate_threshold:
            return Convergence.MODERATE
        return Convergence.LIMITED

    @classmethod
    def summarize(cls, history: Sequence[RoundRecord]) -> Optional[RunStats]:
        """
        Summarise ``history``.

        Returns:
            ``None`` for an empty history. Otherwise the stats, with
            ``best_epoch`` the earliest epoch reaching the best accuracy.
        """
        if not history:
            return None
        initial = history[0].global_accuracy
        final = history[-1].global_accuracy
        best = history[0]
        for entry in history[1:]:
            if entry.global_accuracy > best.global_accuracy:
                best = entry
        improvement = final - initial
        return RunStats(
            initial_accuracy=initial,
            final_accuracy=final,
            improvement=improvement,
            best_accuracy=best.global_accuracy,
            best_epoch=best.epoch,
            convergence=cls.classify(improvement),
        )
