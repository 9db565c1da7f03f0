"""
Test: Federation Layer

Validates contribution-weighted aggregation and gossip blending.
"""

import numpy as np
import pytest

from mltorrent.federation.aggregator import FederatedAggregator, normalize_contributions
from mltorrent.federation.gossip import (
    GossipConfig,
    GossipSync,
    blend_parameters,
    draw_gossip_participants,
)
from mltorrent.federation.model import LocalModel, ModelParameters
from mltorrent.federation.peer import PeerSimulator


class TestNormalizeContributions:
    def test_sums_to_one(self, rng):
        for size in (1, 2, 5, 17):
            weights = normalize_contributions(rng.uniform(0.8, 1.0, size=size))
            assert abs(weights.sum() - 1.0) < 1e-9

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            normalize_contributions([])


class TestFederatedAggregator:
    def test_weighted_mean(self):
        agg = FederatedAggregator(ModelParameters([0.0, 0.0], 0.0))
        updates = [
            (ModelParameters([1.0, 1.0], 1.0), 1.0),
            (ModelParameters([3.0, 3.0], 3.0), 3.0),
        ]
        result, meta = agg.aggregate(updates)
        assert np.allclose(result.as_vector(), [2.5, 2.5, 2.5])
        assert meta["participants"] == 2
        assert sum(meta["weights"]) == pytest.approx(1.0)

    def test_single_peer_is_identity(self, rng):
        agg = FederatedAggregator(ModelParameters([0.0, 0.0], 0.0))
        params = LocalModel(rng).get_parameters()
        result, _ = agg.aggregate([(params, 0.87)])
        assert np.array_equal(result.as_vector(), params.as_vector())

    def test_empty_set_leaves_global_unchanged(self):
        initial = ModelParameters([0.3, -0.2], 0.1)
        agg = FederatedAggregator(initial)
        result, meta = agg.aggregate([])
        assert result.allclose(initial)
        assert meta["skipped"] is True
        assert agg.rounds == 0

    def test_global_is_not_aliased(self):
        agg = FederatedAggregator(ModelParameters([0.0, 0.0], 0.0))
        source = ModelParameters([1.0, 2.0], 3.0)
        result, _ = agg.aggregate([(source, 1.0)])
        source.weights[0] = 50.0
        result.weights[1] = 50.0
        assert np.allclose(agg.global_parameters.as_vector(), [1.0, 2.0, 3.0])


class TestGossip:
    def test_blend_is_convex_combination(self, rng):
        beta = GossipConfig().blend_factor
        for _ in range(20):
            local = ModelParameters(rng.normal(size=2), rng.normal())
            global_params = ModelParameters(rng.normal(size=2), rng.normal())
            blended = blend_parameters(local, global_params, beta).as_vector()
            lv, gv = local.as_vector(), global_params.as_vector()
            assert np.allclose(blended, lv + beta * (gv - lv))
            # On the segment: each coordinate lies between the endpoints.
            assert np.all(blended >= np.minimum(lv, gv) - 1e-12)
            assert np.all(blended <= np.maximum(lv, gv) + 1e-12)

    def test_participation_rate(self, rng):
        mask = draw_gossip_participants(20000, rng, 0.7)
        assert 0.68 < mask.mean() < 0.72

    def test_run_blends_only_winners(self, rng, train_data):
        peers = [
            PeerSimulator(i + 1, f"p{i}", train_data.subset(i * 100, (i + 1) * 100), LocalModel(rng), 0.9)
            for i in range(6)
        ]
        before = {p.peer_id: p.parameters() for p in peers}
        global_params = ModelParameters([2.0, 2.0], 0.5)

        synced = GossipSync().run(peers, global_params, rng)

        for peer in peers:
            expected = before[peer.peer_id]
            if peer.peer_id in synced:
                expected = blend_parameters(expected, global_params, 0.3)
            assert peer.parameters().allclose(expected)

    def test_always_participate_never_overwrites(self, rng, tiny_dataset):
        peer = PeerSimulator(1, "p", tiny_dataset, LocalModel(rng), 0.9)
        global_params = ModelParameters([4.0, 4.0], 4.0)
        GossipSync(GossipConfig(participation_probability=1.0)).run([peer], global_params, rng)
        assert not peer.parameters().allclose(global_params)

    def test_invalid_blend_factor(self):
        with pytest.raises(ValueError):
            GossipSync(GossipConfig(blend_factor=1.5))
