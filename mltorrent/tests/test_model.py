"""
Test: Local Model

Validates the logistic classifier's prediction, gradient step and scoring.
"""

import math

import numpy as np
import pytest

from mltorrent.federation.model import LocalModel, ModelConfig, ModelParameters, sigmoid


def _model_with(params, rng):
    model = LocalModel(rng)
    model.set_parameters(params)
    return model


class TestLocalModelInit:
    def test_parameters_within_init_range(self, rng):
        for _ in range(20):
            vec = LocalModel(rng).get_parameters().as_vector()
            assert np.all(np.abs(vec) <= 0.5)


class TestPredict:
    def test_matches_sigmoid(self, rng):
        model = _model_with(ModelParameters([0.5, -1.0], 0.25), rng)
        expected = 1.0 / (1.0 + math.exp(-(0.5 * 2.0 - 1.0 * 1.0 + 0.25)))
        assert model.predict(2.0, 1.0) == pytest.approx(expected)

    def test_sigmoid_is_finite_for_extreme_logits(self):
        out = sigmoid(np.array([-1e6, 0.0, 1e6]))
        assert np.all(np.isfinite(out))
        assert out[1] == pytest.approx(0.5)


class TestTrain:
    def test_single_step_matches_hand_computation(self, rng, tiny_dataset):
        model = _model_with(ModelParameters([0.0, 0.0], 0.0), rng)
        gradient = model.train(tiny_dataset, learning_rate=0.1)

        # p = 0.5 everywhere, so error = label - 0.5
        errors = np.array([0.5, 0.5, -0.5, -0.5])
        expected = np.array([
            np.sum(errors * tiny_dataset.features[:, 0]),
            np.sum(errors * tiny_dataset.features[:, 1]),
            np.sum(errors),
        ])
        assert np.allclose(gradient, expected)

        params = model.get_parameters()
        assert np.allclose(params.weights, 0.1 * expected[:2] / 4)
        assert params.bias == pytest.approx(0.1 * expected[2] / 4)

    def test_uses_configured_learning_rate(self, rng, tiny_dataset):
        a = LocalModel(np.random.default_rng(1), ModelConfig(learning_rate=0.2))
        b = LocalModel(np.random.default_rng(1))
        a.train(tiny_dataset)
        b.train(tiny_dataset, learning_rate=0.2)
        assert a.get_parameters().allclose(b.get_parameters())

    def test_empty_data_is_noop(self, rng, tiny_dataset):
        model = LocalModel(rng)
        before = model.get_parameters()
        model.train(tiny_dataset.subset(0, 0))
        assert model.get_parameters().allclose(before)

    def test_training_reduces_loss(self, rng, train_data):
        model = LocalModel(rng, ModelConfig(learning_rate=0.1))
        initial = model.evaluate(train_data)["loss"]
        for _ in range(50):
            model.train(train_data)
        assert model.evaluate(train_data)["loss"] < initial


class TestEvaluate:
    def test_bounds_hold_for_random_models(self, rng, train_data):
        for _ in range(25):
            model = LocalModel(rng, ModelConfig(init_scale=5.0))
            metrics = model.evaluate(train_data.subset(0, 37))
            assert 0.0 <= metrics["accuracy"] <= 1.0
            assert metrics["loss"] >= 0.0

    def test_saturated_predictions_keep_loss_finite(self, rng, tiny_dataset):
        model = _model_with(ModelParameters([-1e4, -1e4], 0.0), rng)
        metrics = model.evaluate(tiny_dataset)
        assert metrics["accuracy"] == 0.0
        assert np.isfinite(metrics["loss"])
        assert metrics["loss"] == pytest.approx(-math.log(1e-15), rel=1e-3)

    def test_perfect_model(self, rng, tiny_dataset):
        model = _model_with(ModelParameters([50.0, 50.0], 0.0), rng)
        metrics = model.evaluate(tiny_dataset)
        assert metrics["accuracy"] == 1.0
        assert 0.0 <= metrics["loss"] < 1e-6


class TestParameterAccessors:
    def test_copy_out_does_not_alias(self, rng):
        model = LocalModel(rng)
        params = model.get_parameters()
        params.weights[0] = 99.0
        assert model.get_parameters().weights[0] != 99.0

    def test_copy_in_does_not_alias(self, rng):
        model = LocalModel(rng)
        params = ModelParameters([1.0, 2.0], 3.0)
        model.set_parameters(params)
        params.weights[1] = -7.0
        assert model.get_parameters().weights[1] == 2.0

    def test_vector_roundtrip(self):
        params = ModelParameters([1.5, -2.5], 0.75)
        assert ModelParameters.from_vector(params.as_vector()).allclose(params)
