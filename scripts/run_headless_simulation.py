"""
Run an MLTorrent simulation without a UI and log the outcome.

Runs the timed loop when MLTORRENT_TICK is set, otherwise drives the rounds
synchronously.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mltorrent.federation.orchestrator import TorrentConfig, TrainingOrchestrator

logging.basicConfig(
    level=os.getenv("MLTORRENT_LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("mltorrent.headless")


# ═══════════════════════════════════════════════════════════════════════════
# CONFIG: override via env vars
# ═══════════════════════════════════════════════════════════════════════════

SEED       = int(os.getenv("MLTORRENT_SEED", "42"))
NUM_PEERS  = int(os.getenv("MLTORRENT_PEERS", "5"))
ROUNDS     = int(os.getenv("MLTORRENT_ROUNDS", "50"))
TICK       = os.getenv("MLTORRENT_TICK")                  # Seconds; unset = synchronous


def build_config() -> TorrentConfig:
    config = TorrentConfig(seed=SEED, max_epochs=ROUNDS)
    config.peers.num_peers = NUM_PEERS
    if TICK:
        config.tick_seconds = float(TICK)
    return config


async def run_timed(orchestrator: TrainingOrchestrator) -> None:
    await orchestrator.start()
    await orchestrator.wait()


def main():
    orchestrator = TrainingOrchestrator(build_config())
    logger.info("Starting %d rounds with %d peers (seed=%d)", orchestrator.max_epochs, NUM_PEERS, SEED)

    if TICK:
        asyncio.run(run_timed(orchestrator))
    else:
        orchestrator.run_rounds(orchestrator.max_epochs)

    snap = orchestrator.snapshot()
    for peer in snap.peers:
        logger.info(
            "  %-20s shard=%4d acc=%.3f status=%-7s trust=%.3f updates=%d",
            peer.name, peer.shard_size, peer.accuracy, peer.status.value,
            peer.contribution_weight, peer.total_updates,
        )
    logger.info("Shared %d KB in %d model fragments", snap.total_data_shared, snap.model_fragments)

    stats = snap.stats
    logger.info(
        "Global accuracy %.3f -> %.3f (best %.3f at epoch %d); convergence: %s",
        stats.initial_accuracy, stats.final_accuracy, stats.best_accuracy,
        stats.best_epoch, stats.convergence.value,
    )


if __name__ == "__main__":
    main()
