import math

import pytest

from core.sliding_window_evaluator import SlidingWindowEvaluator


def test_empty_window():
    m = SlidingWindowEvaluator(window_size=5).get_metrics()
    assert m.window_size == 0
    assert m.accuracy is None and m.auc is None


def test_rejects_tiny_window():
    with pytest.raises(ValueError):
        SlidingWindowEvaluator(window_size=1)


def test_signed_labels_accuracy_and_auc():
    ev = SlidingWindowEvaluator(window_size=10)
    ev.record(0.9, 1.0, 0.1)
    ev.record(-0.4, -1.0, 0.2)
    ev.record(0.2, -1.0, 0.9)
    ev.record(0.5, 1.0, 0.3)

    m = ev.get_metrics()
    assert m.window_size == 4
    assert m.accuracy == pytest.approx(0.75)
    assert m.auc == pytest.approx(1.0)
    assert m.mean_loss == pytest.approx(0.375)


def test_zero_one_labels_use_half_threshold():
    ev = SlidingWindowEvaluator(window_size=10)
    ev.record(0.7, 1.0)
    ev.record(0.3, 0.0)
    ev.record(0.4, 1.0)
    assert ev.get_metrics().accuracy == pytest.approx(2 / 3)


def test_single_class_has_no_auc():
    ev = SlidingWindowEvaluator(window_size=10)
    ev.record(0.5, 1.0)
    ev.record(-0.5, 1.0)
    m = ev.get_metrics()
    assert m.accuracy == pytest.approx(0.5)
    assert m.auc is None


def test_explicit_threshold():
    ev = SlidingWindowEvaluator(window_size=10, threshold=0.5)
    ev.record(0.7, 1.0)
    ev.record(0.2, 1.0)
    assert ev.get_metrics().accuracy == pytest.approx(0.5)


def test_non_finite_predictions_skip_auc():
    ev = SlidingWindowEvaluator(window_size=10)
    ev.record(float("nan"), 1.0)
    ev.record(0.1, -1.0)
    assert ev.get_metrics().auc is None


def test_regression_labels():
    ev = SlidingWindowEvaluator(window_size=10)
    ev.record(1.0, 2.0, 0.5)
    ev.record(3.0, 0.5, 3.125)
    m = ev.get_metrics()
    assert m.accuracy is None
    assert m.rmse == pytest.approx(math.sqrt((1.0 + 6.25) / 2))


def test_window_evicts_but_cumulative_remembers():
    ev = SlidingWindowEvaluator(window_size=2)
    for loss in (1.0, 2.0, 3.0, 4.0):
        ev.record(0.0, 0.0, loss)
    assert len(ev) == 2
    assert ev.get_metrics().mean_loss == pytest.approx(3.5)
    assert ev.cumulative_loss == pytest.approx(2.5)
    assert ev.total_seen == 4


def test_cumulative_rmse_covers_evicted_records():
    ev = SlidingWindowEvaluator(window_size=1)
    ev.record(0.0, 3.0)
    ev.record(1.0, 0.0)
    assert ev.get_metrics().rmse == pytest.approx(1.0)
    assert ev.cumulative_rmse == pytest.approx(math.sqrt((9.0 + 1.0) / 2))
