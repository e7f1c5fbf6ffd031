"""
losses.py
─────────
Pluggable loss functions for the online learner.

Contract
────────
The learner only ever calls

    negative_gradient(prediction, label, weight) -> float

which must be pure: no side effects, no dependency on learner state.  The
sign convention is that of −∂loss/∂prediction, so adding it (scaled by a
feature value) to the gradient accumulator moves the model toward lower
loss.  loss_value() is used for reporting only.

Available losses
────────────────
    squared    : ½(y − p)²                  −∂/∂p = w·(y − p)
    absolute   : |y − p|                    −∂/∂p = w·sign(y − p)
    logistic   : log(1 + exp(−y·p))         −∂/∂p = w·y·σ(−y·p)      y ∈ {−1, +1}
    hinge      : max(0, 1 − y·p)            −∂/∂p = w·y  if y·p < 1  y ∈ {−1, +1}
"""

import math
from abc import ABC, abstractmethod

import numpy as np


# ─────────────────────────────────────────────────────────────────────────────
# Numerical-stability helpers
# ─────────────────────────────────────────────────────────────────────────────

def _clip(z: float, lo: float = -500.0, hi: float = 500.0) -> float:
    """Clip a margin so exp() never overflows."""
    return float(np.clip(z, lo, hi))


def _sigmoid(z: float) -> float:
    """Numerically stable sigmoid.

        σ(z) = 1 / (1 + exp(-z))            for z ≥ 0
        σ(z) = exp(z) / (1 + exp(z))        for z < 0   ← avoids exp(+large)
    """
    z = _clip(z)
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    e = math.exp(z)
    return e / (1.0 + e)


def _softplus(z: float) -> float:
    """log(1 + exp(z)) without overflow."""
    if z > 0:
        return z + math.log1p(math.exp(-z))
    return math.log1p(math.exp(z))


# ─────────────────────────────────────────────────────────────────────────────
# Interface
# ─────────────────────────────────────────────────────────────────────────────

class Loss(ABC):
    """Base class for every loss the learner accepts."""

    name: str = ""

    @abstractmethod
    def negative_gradient(self, prediction: float, label: float, weight: float) -> float:
        """Return −∂loss/∂prediction scaled by the instance *weight*."""

    @abstractmethod
    def loss_value(self, prediction: float, label: float) -> float:
        """Unweighted per-sample loss, for progressive-validation reporting."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def __str__(self) -> str:
        return self.name

    def __eq__(self, other) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))


# ─────────────────────────────────────────────────────────────────────────────
# Regression losses
# ─────────────────────────────────────────────────────────────────────────────

class SquaredLoss(Loss):
    name = "squared"

    def negative_gradient(self, prediction, label, weight):
        return weight * (label - prediction)

    def loss_value(self, prediction, label):
        return 0.5 * (label - prediction) ** 2


class AbsoluteLoss(Loss):
    name = "absolute"

    def negative_gradient(self, prediction, label, weight):
        return weight * float(np.sign(label - prediction))

    def loss_value(self, prediction, label):
        return abs(label - prediction)


# ─────────────────────────────────────────────────────────────────────────────
# Classification losses  (labels in {−1, +1})
# ─────────────────────────────────────────────────────────────────────────────

class LogisticLoss(Loss):
    name = "logistic"

    def negative_gradient(self, prediction, label, weight):
        return weight * label * _sigmoid(-label * prediction)

    def loss_value(self, prediction, label):
        return _softplus(-label * prediction)


class HingeLoss(Loss):
    name = "hinge"

    def negative_gradient(self, prediction, label, weight):
        if label * prediction < 1.0:
            return weight * label
        return 0.0

    def loss_value(self, prediction, label):
        return max(0.0, 1.0 - label * prediction)


# ─────────────────────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────────────────────

_REGISTRY = {cls.name: cls for cls in (SquaredLoss, AbsoluteLoss, LogisticLoss, HingeLoss)}


def available_losses() -> tuple:
    return tuple(_REGISTRY)


def get_loss(name: str) -> Loss:
    """Instantiate a loss by its registry name ('squared', 'logistic', …)."""
    try:
        return _REGISTRY[name]()
    except KeyError:
        raise ValueError(
            f"Unknown loss '{name}'; expected one of {available_losses()}."
        ) from None
