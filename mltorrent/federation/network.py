"""
Synthetic peer-to-peer traffic telemetry.

Nothing here moves data. Each round a handful of transfer events between
active peers is drawn at random and kept in a short trailing log, and running
totals of shared data and model fragments are bumped, purely for display.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, List, Optional, Sequence, Tuple

import numpy as np


class EventKind(str, Enum):
    """What a simulated transfer carried."""
    MODEL = "model"
    GRADIENT = "gradient"


@dataclass(frozen=True)
class NetworkEvent:
    """A simulated transfer between two peers."""
    event_id: int
    epoch: int
    source: int
    target: int
    kind: EventKind
    size_kb: int
    timestamp: float


@dataclass
class NetworkActivityConfig:
    """Configuration for synthetic network telemetry."""
    min_events_per_round: int = 2
    max_events_per_round: int = 4
    model_event_probability: float = 0.6
    size_kb_range: Tuple[int, int] = (50, 200)          # Half-open
    log_size: int = 15
    data_shared_kb_range: Tuple[int, int] = (200, 500)  # Half-open
    fragments_range: Tuple[int, int] = (3, 11)          # Half-open


def draw_network_events(
    active_ids: Sequence[int],
    epoch: int,
    rng: np.random.Generator,
    config: NetworkActivityConfig,
    first_event_id: int = 0,
    timestamp: Optional[float] = None,
) -> List[NetworkEvent]:
    """
    Draw this round's batch of transfer events among ``active_ids``.

    The batch size is uniform over the configured range. Each event links two
    distinct peers; with fewer than two active peers no events are produced.
    """
    if len(active_ids) < 2:
        return []
    ts = time.time() if timestamp is None else timestamp
    count = int(rng.integers(config.min_events_per_round, config.max_events_per_round + 1))
    low, high = config.size_kb_range
    events = []
    for i in range(count):
        source_idx = int(rng.integers(len(active_ids)))
        # Pick the target among the remaining peers so the pair is distinct.
        offset = int(rng.integers(1, len(active_ids)))
        target_idx = (source_idx + offset) % len(active_ids)
        kind = EventKind.MODEL if rng.random() < config.model_event_probability else EventKind.GRADIENT
        events.append(
            NetworkEvent(
                event_id=first_event_id + i,
                epoch=epoch,
                source=int(active_ids[source_idx]),
                target=int(active_ids[target_idx]),
                kind=kind,
                size_kb=int(rng.integers(low, high)),
                timestamp=ts,
            )
        )
    return events


class NetworkActivityLog:
    """Bounded trailing window of the most recent network events."""

    def __init__(self, maxlen: int = 15):
        self._events: Deque[NetworkEvent] = deque(maxlen=maxlen)
        self._next_id = 0

    @property
    def next_event_id(self) -> int:
        return self._next_id

    def extend(self, events: Sequence[NetworkEvent]) -> None:
        self._events.extend(events)
        self._next_id += len(events)

    def events(self) -> Tuple[NetworkEvent, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)


@dataclass
class TransferTotals:
    """Running synthetic counters shown alongside the event log."""
    total_data_shared: int = 0
    model_fragments: int = 0

    def advance(self, rng: np.random.Generator, config: NetworkActivityConfig) -> None:
        self.total_data_shared += int(rng.integers(*config.data_shared_kb_range))
        self.model_fragments += int(rng.integers(*config.fragments_range))
