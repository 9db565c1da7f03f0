"""
Round-based orchestrator for the MLTorrent simulation.

Drives the closed loop: local training on every active peer, contribution-
weighted aggregation into the global model, evaluation on the held-out test
set, gossip back toward the peers, status churn, synthetic traffic telemetry,
and the round ledger.

Usage:
    orchestrator = TrainingOrchestrator(TorrentConfig(seed=7))

    # Headless, synchronous
    orchestrator.run_rounds(30)

    # Timed loop inside an event loop
    await orchestrator.start()
    ...
    await orchestrator.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from mltorrent.analytics.history import HistoryRecorder, RoundRecord, RunStats, StatsAnalyzer
from mltorrent.synthetic.generator import DataConfig, DataGenerator, Dataset
from .aggregator import FederatedAggregator
from .gossip import GossipConfig, GossipSync
from .model import LocalModel, ModelConfig
from .network import (
    NetworkActivityConfig,
    NetworkActivityLog,
    NetworkEvent,
    TransferTotals,
    draw_network_events,
)
from .peer import (
    PeerConfig,
    PeerSimulator,
    PeerSnapshot,
    active_peers,
    build_peers,
    draw_status_flips,
)

logger = logging.getLogger(__name__)

MAX_EPOCHS_BOUNDS: Tuple[int, int] = (1, 200)


class OrchestratorStateError(RuntimeError):
    """Raised when an operation is not allowed in the current lifecycle state."""


class OrchestratorState(str, Enum):
    """Lifecycle of the training loop."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


def clamp_max_epochs(value: int) -> int:
    low, high = MAX_EPOCHS_BOUNDS
    return int(min(max(int(value), low), high))


@dataclass
class TorrentConfig:
    """Configuration for a full simulation."""
    # Component configs
    data: DataConfig = field(default_factory=DataConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    peers: PeerConfig = field(default_factory=PeerConfig)
    gossip: GossipConfig = field(default_factory=GossipConfig)
    network: NetworkActivityConfig = field(default_factory=NetworkActivityConfig)

    # Operational settings
    seed: Optional[int] = None
    tick_seconds: float = 1.5             # Delay between rounds of the timed loop
    max_epochs: int = 50


@dataclass(frozen=True)
class OrchestratorSnapshot:
    """Everything a presentation layer may read, captured between rounds."""
    state: OrchestratorState
    epoch: int
    max_epochs: int
    global_accuracy: float
    global_loss: float
    active_peer_count: int
    peers: Tuple[PeerSnapshot, ...]
    network_events: Tuple[NetworkEvent, ...]
    history: Tuple[RoundRecord, ...]
    stats: Optional[RunStats]
    total_data_shared: int
    model_fragments: int
    started_at: Optional[float]
    stopped_at: Optional[float]


class TrainingOrchestrator:
    """
    Owns the peers, the aggregator and the history, and sequences each round.

    A round is ordinary synchronous code, so in the timed loop it always runs
    to completion before ``stop`` or ``reset`` can interleave.
    """

    def __init__(
        self,
        config: Optional[TorrentConfig] = None,
        rng: Optional[np.random.Generator] = None,
        generator=None,
    ):
        """
        Initialize the orchestrator and build the initial network.

        Args:
            config: Simulation configuration.
            rng: Random source for every stochastic choice. Created from
                ``config.seed`` when omitted.
            generator: Data source with a ``generate(n, rng)`` method.
                Defaults to ``DataGenerator(config.data)``.

        Raises:
            InvalidConfiguration: If the peers cannot be given non-empty shards.
        """
        self.config = config or TorrentConfig()
        self._rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.generator = generator or DataGenerator(self.config.data)
        self._max_epochs = clamp_max_epochs(self.config.max_epochs)
        self._gossip = GossipSync(self.config.gossip)

        self._state = OrchestratorState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._initialize()

    # Lifecycle ----------------------------------------------------------- #

    def _initialize(self) -> None:
        """(Re)build all owned simulation state from the random source."""
        cfg = self.config
        now = time.time()

        self._train_data: Dataset = self.generator.generate(cfg.data.train_size, self._rng)
        self._test_data: Dataset = self.generator.generate(cfg.data.test_size, self._rng)
        self._peers: List[PeerSimulator] = build_peers(
            self._train_data, cfg.peers, cfg.model, self._rng, now=now
        )

        # Scoring shell for the global parameters; the aggregator owns the values.
        self._global_model = LocalModel(self._rng, cfg.model)
        self.aggregator = FederatedAggregator(self._global_model.get_parameters())

        self._network_log = NetworkActivityLog(cfg.network.log_size)
        self._totals = TransferTotals()
        self._history = HistoryRecorder()
        self._epoch = 0
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None

        metrics = self._global_model.evaluate(self._test_data)
        self._global_accuracy = metrics["accuracy"]
        self._global_loss = metrics["loss"]
        self._history.record(0, self._global_accuracy, self._global_loss, self._avg_peer_accuracy())

    async def start(self) -> None:
        """
        Start the timed round loop.

        Idempotent while running. Does nothing once ``max_epochs`` is reached.
        """
        if self._state == OrchestratorState.RUNNING:
            return
        if self._epoch >= self._max_epochs:
            logger.warning("Start requested at epoch %d with max_epochs=%d; nothing to do",
                           self._epoch, self._max_epochs)
            self._state = OrchestratorState.COMPLETED
            return
        self._state = OrchestratorState.RUNNING
        self._started_at = time.time()
        self._stopped_at = None
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Training started at epoch %d (max %d, tick %.3fs)",
                    self._epoch, self._max_epochs, self.config.tick_seconds)

    async def stop(self) -> None:
        """Cancel the pending tick and return to ``idle``, also from ``completed``."""
        task = self._task
        self._task = None
        if self._state == OrchestratorState.RUNNING:
            self._finish(OrchestratorState.IDLE)
            logger.info("Training stopped at epoch %d", self._epoch)
        elif self._state == OrchestratorState.COMPLETED:
            self._state = OrchestratorState.IDLE
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def reset(self) -> None:
        """Stop, then replace peers, global model, history and counters."""
        await self.stop()
        self._initialize()
        self._state = OrchestratorState.IDLE
        logger.info("Simulation reset with %d peers", len(self._peers))

    async def wait(self) -> None:
        """Wait until the timed loop stops on its own or is stopped."""
        task = self._task
        if task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def set_max_epochs(self, value: int) -> int:
        """
        Set the epoch limit, clamped to ``MAX_EPOCHS_BOUNDS``.

        Returns:
            The value applied.

        Raises:
            OrchestratorStateError: While the loop is running.
        """
        if self._state == OrchestratorState.RUNNING:
            raise OrchestratorStateError("max_epochs cannot change while training is running")
        self._max_epochs = clamp_max_epochs(value)
        if self._state == OrchestratorState.COMPLETED and self._epoch < self._max_epochs:
            self._state = OrchestratorState.IDLE
        return self._max_epochs

    def _finish(self, state: OrchestratorState) -> None:
        self._state = state
        self._stopped_at = time.time()

    async def _run_loop(self) -> None:
        """Tick every ``tick_seconds`` until stopped or ``max_epochs`` is reached."""
        try:
            while self._state == OrchestratorState.RUNNING:
                await asyncio.sleep(self.config.tick_seconds)
                if self._state != OrchestratorState.RUNNING:
                    break
                self._step()
                if self._epoch >= self._max_epochs:
                    self._finish(OrchestratorState.COMPLETED)
                    logger.info("Training completed after %d epochs", self._epoch)
        except Exception:
            logger.exception("Round %d failed; stopping training", self._epoch + 1)
            self._finish(OrchestratorState.IDLE)

    # Rounds -------------------------------------------------------------- #

    def run_rounds(self, rounds: int) -> List[RoundRecord]:
        """
        Run up to ``rounds`` rounds synchronously, stopping at ``max_epochs``.

        Raises:
            OrchestratorStateError: While the timed loop is running.
        """
        if self._state == OrchestratorState.RUNNING:
            raise OrchestratorStateError("Cannot run rounds manually while the loop is running")
        records = []
        for _ in range(rounds):
            if self._epoch >= self._max_epochs:
                break
            records.append(self._step())
        if self._epoch >= self._max_epochs:
            self._state = OrchestratorState.COMPLETED
        return records

    def step(self) -> RoundRecord:
        """
        Run a single round outside the timed loop.

        Raises:
            OrchestratorStateError: While the timed loop is running, or once
                ``max_epochs`` has been reached.
        """
        if self._state == OrchestratorState.RUNNING:
            raise OrchestratorStateError("Cannot step manually while the loop is running")
        if self._epoch >= self._max_epochs:
            raise OrchestratorStateError(f"max_epochs={self._max_epochs} already reached")
        record = self._step()
        if self._epoch >= self._max_epochs:
            self._state = OrchestratorState.COMPLETED
        return record

    def _step(self) -> RoundRecord:
        """
        Execute one complete round and append its record.

        The active set is captured before training and used for aggregation,
        gossip and telemetry; status flips only take effect next round.
        """
        cfg = self.config
        rng = self._rng
        now = time.time()

        participants = active_peers(self._peers)
        for peer in participants:
            peer.train_round(rng, now=now)

        global_params, _ = self.aggregator.aggregate(
            [(peer.parameters(), peer.contribution_weight) for peer in participants]
        )
        self._global_model.set_parameters(global_params)
        metrics = self._global_model.evaluate(self._test_data)
        self._global_accuracy = metrics["accuracy"]
        self._global_loss = metrics["loss"]

        self._gossip.run(participants, global_params, rng)

        flips = draw_status_flips(len(self._peers), rng, cfg.peers.status_flip_probability)
        for peer, flip in zip(self._peers, flips):
            peer.apply_flip(bool(flip))

        epoch = self._epoch + 1
        events = draw_network_events(
            [peer.peer_id for peer in participants],
            epoch,
            rng,
            cfg.network,
            first_event_id=self._network_log.next_event_id,
            timestamp=now,
        )
        self._network_log.extend(events)
        self._totals.advance(rng, cfg.network)

        self._epoch = epoch
        record = self._history.record(
            epoch, self._global_accuracy, self._global_loss, self._avg_peer_accuracy()
        )
        logger.debug(
            "Epoch %d: %d active, global acc=%.4f loss=%.4f",
            epoch, len(participants), record.global_accuracy, record.global_loss,
        )
        return record

    def _avg_peer_accuracy(self) -> float:
        if not self._peers:
            return 0.0
        return float(np.mean([peer.accuracy for peer in self._peers]))

    # Read-only views ----------------------------------------------------- #

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def max_epochs(self) -> int:
        return self._max_epochs

    @property
    def global_accuracy(self) -> float:
        return self._global_accuracy

    @property
    def global_loss(self) -> float:
        return self._global_loss

    @property
    def peers(self) -> Tuple[PeerSnapshot, ...]:
        return tuple(peer.snapshot() for peer in self._peers)

    @property
    def network_events(self) -> Tuple[NetworkEvent, ...]:
        return self._network_log.events()

    @property
    def history(self) -> Tuple[RoundRecord, ...]:
        return self._history.records()

    @property
    def totals(self) -> TransferTotals:
        return TransferTotals(self._totals.total_data_shared, self._totals.model_fragments)

    def stats(self) -> Optional[RunStats]:
        return StatsAnalyzer.summarize(self._history.records())

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            state=self._state,
            epoch=self._epoch,
            max_epochs=self._max_epochs,
            global_accuracy=self._global_accuracy,
            global_loss=self._global_loss,
            active_peer_count=len(active_peers(self._peers)),
            peers=self.peers,
            network_events=self.network_events,
            history=self.history,
            stats=self.stats(),
            total_data_shared=self._totals.total_data_shared,
            model_fragments=self._totals.model_fragments,
            started_at=self._started_at,
            stopped_at=self._stopped_at,
        )
