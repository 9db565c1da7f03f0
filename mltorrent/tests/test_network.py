"""
Test: Network Activity

Validates synthetic event draws, the bounded activity log and the running
transfer totals.
"""

import numpy as np

from mltorrent.federation.network import (
    EventKind,
    NetworkActivityConfig,
    NetworkActivityLog,
    TransferTotals,
    draw_network_events,
)


def test_event_batches_respect_ranges(rng):
    config = NetworkActivityConfig()
    kinds = []
    for epoch in range(200):
        events = draw_network_events([1, 2, 4, 5], epoch, rng, config, timestamp=1.0)
        assert 2 <= len(events) <= 4
        for event in events:
            assert event.source != event.target
            assert {event.source, event.target} <= {1, 2, 4, 5}
            assert 50 <= event.size_kb < 200
            assert event.epoch == epoch
            kinds.append(event.kind)
    model_share = np.mean([k == EventKind.MODEL for k in kinds])
    assert 0.5 < model_share < 0.7


def test_no_events_without_a_pair(rng):
    config = NetworkActivityConfig()
    assert draw_network_events([], 1, rng, config) == []
    assert draw_network_events([3], 1, rng, config) == []


def test_log_keeps_trailing_window(rng):
    config = NetworkActivityConfig()
    log = NetworkActivityLog(config.log_size)
    for epoch in range(20):
        log.extend(draw_network_events([1, 2, 3], epoch, rng, config, first_event_id=log.next_event_id))
    events = log.events()
    assert len(events) == 15
    ids = [e.event_id for e in events]
    assert ids == list(range(log.next_event_id - 15, log.next_event_id))


def test_totals_advance_within_ranges(rng):
    totals = TransferTotals()
    totals.advance(rng, NetworkActivityConfig())
    assert 200 <= totals.total_data_shared < 500
    assert 3 <= totals.model_fragments < 11
