import math

import numpy as np
import pytest

from core.losses import Loss, LogisticLoss, SquaredLoss
from core.sample import Sample
from core.scale_invariant_learner import EPSILON, ScaleInvariantLearner
from core.sparse_vector import SparseVector


def _learner(bits=2, L=1.0, lr=1.0, loss=None):
    learner = ScaleInvariantLearner(bits, L=L, initial_learning_rate=lr)
    learner.set_loss(loss or SquaredLoss())
    return learner


def _state(learner):
    return [
        learner.weights,
        learner.sum_gradient,
        learner.sum_squared_gradient,
        learner.max_feature,
        learner.learning_rates,
    ]


def _random_stream(n, n_coords, seed, scale=None):
    rng = np.random.default_rng(seed)
    samples = []
    for _ in range(n):
        k = rng.integers(1, n_coords + 1)
        idx = rng.choice(n_coords, size=k, replace=False)
        vals = rng.standard_normal(k)
        if scale is not None:
            vals = vals * scale[idx]
        label = float(rng.standard_normal() * 3)
        samples.append((idx, vals, label))
    return samples


def test_construction_defaults():
    learner = ScaleInvariantLearner(4)
    assert learner.size_hash == 16
    assert learner.L == 1.0
    assert learner.clip_gradient is True
    assert learner.get_loss() is None
    np.testing.assert_array_equal(learner.weights, np.zeros(16))
    np.testing.assert_array_equal(learner.max_feature, np.full(16, EPSILON))
    np.testing.assert_array_equal(learner.learning_rates, np.ones(16))


@pytest.mark.parametrize("bits", [-1, 32, 2.5, "3", True])
def test_rejects_bad_bits(bits):
    with pytest.raises(ValueError):
        ScaleInvariantLearner(bits)


@pytest.mark.parametrize("L", [0.0, -1.0, float("inf"), float("nan")])
def test_rejects_bad_L(L):
    with pytest.raises(ValueError):
        ScaleInvariantLearner(3, L=L)
    learner = ScaleInvariantLearner(3)
    with pytest.raises(ValueError):
        learner.set_L(L)


def test_update_without_loss_raises():
    learner = ScaleInvariantLearner(2)
    with pytest.raises(RuntimeError):
        learner.update(Sample.from_dict({0: 1.0}, 1.0))


def test_weight_formula_scenario():
    learner = _learner(bits=2)
    sample = Sample.from_dict({0: 2.0}, label=0.5)

    pred = learner.update(sample)

    # fresh coordinate: theta = 0, so w = 0 and the negative gradient is 0.5
    assert pred == 0.0
    assert learner.max_feature[0] == 2.0
    assert learner.sum_gradient[0] == 1.0
    assert learner.sum_squared_gradient[0] == 1.0
    assert learner.learning_rates[0] == 1.0
    assert learner.predict(sample) == pred


def test_second_update_uses_weight_from_same_call():
    learner = _learner(bits=2)
    sample = Sample.from_dict({0: 2.0}, label=0.5)
    learner.update(sample)

    pred = learner.update(sample)

    # d = sqrt(1 + 4), theta = 1/d, w = theta / (2d) = 0.1
    assert pred == pytest.approx(0.2)
    assert learner.weights[0] == pytest.approx(0.1)
    assert learner.sum_gradient[0] == pytest.approx(1.0 + 2.0 * 0.3)
    assert learner.sum_squared_gradient[0] == pytest.approx(1.0 + 0.6 ** 2)
    assert learner.learning_rates[0] == pytest.approx(1.0 + 0.6 * 0.1)
    assert learner.predict(sample) == pred


def test_gradient_is_clipped_to_L():
    learner = _learner(bits=2)
    learner.update(Sample.from_dict({0: 1.0}, label=1000.0))
    assert learner.sum_gradient[0] == 1.0
    assert learner.sum_squared_gradient[0] == 1.0

    learner = _learner(bits=2)
    learner.update(Sample.from_dict({0: 1.0}, label=-1000.0))
    assert learner.sum_gradient[0] == -1.0


def test_clip_bound_follows_L_and_can_be_disabled():
    learner = _learner(bits=2, L=2.0)
    learner.update(Sample.from_dict({1: 1.0}, label=1000.0))
    assert learner.sum_gradient[1] == 2.0
    assert learner.max_feature[1] == 2.0

    learner = _learner(bits=2)
    learner.set_clip_gradient(False)
    learner.update(Sample.from_dict({1: 1.0}, label=1000.0))
    assert learner.sum_gradient[1] == 1000.0
    assert learner.sum_squared_gradient[1] == 1e6


def test_update_touches_only_sample_coordinates():
    learner = _learner(bits=4)
    for idx, vals, label in _random_stream(20, 16, seed=1):
        learner.update(Sample(SparseVector(idx, vals), label))
    before = _state(learner)

    learner.update(Sample.from_dict({3: 0.7, 11: -2.0}, label=1.5))
    after = _state(learner)

    untouched = np.setdiff1d(np.arange(16), [3, 11])
    for b, a in zip(before, after):
        np.testing.assert_array_equal(b[untouched], a[untouched])


def test_predict_is_side_effect_free():
    learner = _learner(bits=4)
    for idx, vals, label in _random_stream(10, 16, seed=2):
        learner.update(Sample(SparseVector(idx, vals), label))
    before = _state(learner)

    learner.predict(Sample.from_dict({0: 1.0, 5: 3.0, 9: -1.0}, label=0.0))

    for b, a in zip(before, _state(learner)):
        np.testing.assert_array_equal(b, a)


def test_invariants_hold_over_a_stream():
    learner = _learner(bits=3)
    previous = learner.sum_squared_gradient
    for idx, vals, label in _random_stream(200, 8, seed=3):
        learner.update(Sample(SparseVector(idx, vals), label))
        current = learner.sum_squared_gradient
        assert np.all(learner.max_feature >= EPSILON)
        assert np.all(current >= 0)
        assert np.all(current >= previous)
        previous = current


def test_determinism():
    stream = _random_stream(100, 16, seed=4)

    def run():
        learner = _learner(bits=4, loss=LogisticLoss())
        preds = [learner.update(Sample(SparseVector(i, v), np.sign(y) or 1.0)) for i, v, y in stream]
        return preds, _state(learner)

    preds_a, state_a = run()
    preds_b, state_b = run()
    assert preds_a == preds_b
    for a, b in zip(state_a, state_b):
        np.testing.assert_array_equal(a, b)


@pytest.mark.parametrize("c", [1e-3, 7.5, 1e4])
def test_predictions_invariant_to_feature_scaling(c):
    stream = _random_stream(300, 10, seed=5)
    a, b = _learner(bits=4), _learner(bits=4)

    preds_a = [a.update(Sample(SparseVector(i, v), y)) for i, v, y in stream]
    preds_b = [b.update(Sample(SparseVector(i, v * c), y)) for i, v, y in stream]

    np.testing.assert_allclose(preds_a, preds_b, rtol=1e-7, atol=1e-10)


def test_predictions_invariant_to_per_feature_scaling():
    scales = np.logspace(-3, 3, 10)
    plain  = _random_stream(300, 10, seed=6)
    scaled = _random_stream(300, 10, seed=6, scale=scales)
    a, b = _learner(bits=4), _learner(bits=4)

    preds_a = [a.update(Sample(SparseVector(i, v), y)) for i, v, y in plain]
    preds_b = [b.update(Sample(SparseVector(i, v), y)) for i, v, y in scaled]

    np.testing.assert_allclose(preds_a, preds_b, rtol=1e-7, atol=1e-10)


@pytest.mark.parametrize("index", [-1, 4, 100])
def test_out_of_range_index_is_rejected_before_any_write(index):
    learner = _learner(bits=2)
    before = _state(learner)
    with pytest.raises(IndexError):
        learner.update(Sample.from_dict({0: 1.0, index: 1.0}, label=1.0))
    with pytest.raises(IndexError):
        learner.predict(Sample.from_dict({index: 1.0}, label=1.0))
    for b, a in zip(before, _state(learner)):
        np.testing.assert_array_equal(b, a)
    assert learner.n_updates == 0


def test_empty_sample_predicts_zero():
    learner = _learner(bits=2)
    assert learner.update(Sample(SparseVector(), 1.0)) == 0.0
    assert learner.n_updates == 1


class _NaNLoss(Loss):
    name = "nan"

    def negative_gradient(self, prediction, label, weight):
        return float("nan")

    def loss_value(self, prediction, label):
        return float("nan")


def test_non_finite_gradient_propagates():
    learner = _learner(bits=2, loss=_NaNLoss())
    sample = Sample.from_dict({1: 1.0}, label=1.0)
    learner.update(sample)
    assert math.isnan(learner.sum_gradient[1])
    assert math.isnan(learner.update(sample))


def test_set_learning_rate_overwrites_every_coordinate():
    learner = _learner(bits=3)
    for idx, vals, label in _random_stream(30, 8, seed=7):
        learner.update(Sample(SparseVector(idx, vals), label))
    assert not np.all(learner.learning_rates == 1.0)

    learner.set_learning_rate(0.25)
    np.testing.assert_array_equal(learner.learning_rates, np.full(8, 0.25))


def test_initial_learning_rate_scales_weights():
    a, b = _learner(bits=2, lr=1.0), _learner(bits=2, lr=3.0)
    sample = Sample.from_dict({0: 1.0, 1: -2.0}, label=0.3)
    for _ in range(2):
        a.update(sample)
        b.update(sample)
    # after one update the weights differ only by the learning-rate scale
    assert a.weights[0] != 0.0
    assert b.weights[0] == pytest.approx(3.0 * a.weights[0])


def test_get_weights_exports_non_zero_entries():
    learner = _learner(bits=3)
    assert len(learner.get_weights()) == 0

    sample = Sample.from_dict({2: 1.0, 5: -1.0}, label=1.0)
    learner.update(sample)
    learner.update(sample)

    exported = learner.get_weights()
    assert set(exported.to_dict()) == {2, 5}
    dense = exported.to_dense(learner.size_hash)
    np.testing.assert_array_equal(dense, learner.weights)


def test_loss_property_and_str():
    learner = ScaleInvariantLearner(2)
    learner.loss = LogisticLoss()
    assert isinstance(learner.get_loss(), LogisticLoss)
    assert str(learner) == "Using ScInOL\nLoss function = logistic"
    assert "bits=2" in repr(learner)
