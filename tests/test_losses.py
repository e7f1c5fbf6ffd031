import math

import pytest

from core.losses import (
    AbsoluteLoss,
    HingeLoss,
    LogisticLoss,
    SquaredLoss,
    available_losses,
    get_loss,
)


def test_squared_loss():
    loss = SquaredLoss()
    assert loss.negative_gradient(0.0, 0.5, 1.0) == 0.5
    assert loss.negative_gradient(2.0, 1.0, 3.0) == -3.0
    assert loss.loss_value(1.0, 3.0) == 2.0


def test_absolute_loss():
    loss = AbsoluteLoss()
    assert loss.negative_gradient(0.0, 4.0, 2.0) == 2.0
    assert loss.negative_gradient(5.0, 4.0, 1.0) == -1.0
    assert loss.negative_gradient(4.0, 4.0, 1.0) == 0.0
    assert loss.loss_value(1.0, -1.0) == 2.0


def test_logistic_loss():
    loss = LogisticLoss()
    assert loss.negative_gradient(0.0, 1.0, 1.0) == pytest.approx(0.5)
    assert loss.negative_gradient(0.0, -1.0, 2.0) == pytest.approx(-1.0)
    assert loss.loss_value(0.0, 1.0) == pytest.approx(math.log(2.0))
    # confident and correct: gradient vanishes
    assert abs(loss.negative_gradient(50.0, 1.0, 1.0)) < 1e-20


def test_logistic_loss_is_stable_for_huge_margins():
    loss = LogisticLoss()
    assert loss.loss_value(1e4, -1.0) == pytest.approx(1e4)
    assert loss.loss_value(1e4, 1.0) == pytest.approx(0.0)
    assert loss.negative_gradient(-1e4, 1.0, 1.0) == pytest.approx(1.0)


def test_hinge_loss():
    loss = HingeLoss()
    assert loss.negative_gradient(0.5, 1.0, 1.0) == 1.0
    assert loss.negative_gradient(0.5, -1.0, 2.0) == -2.0
    assert loss.negative_gradient(1.0, 1.0, 1.0) == 0.0
    assert loss.loss_value(0.25, 1.0) == 0.75
    assert loss.loss_value(3.0, 1.0) == 0.0


def test_registry():
    assert set(available_losses()) == {"squared", "absolute", "logistic", "hinge"}
    assert isinstance(get_loss("hinge"), HingeLoss)
    assert get_loss("squared") == SquaredLoss()
    with pytest.raises(ValueError):
        get_loss("quantile")
