"""
sliding_window_evaluator.py
───────────────────────────
Progressive-validation metrics for the online learner.

Progressive validation
──────────────────────
ScaleInvariantLearner.update() returns the prediction it made BEFORE
learning from the sample, so every (prediction, label) pair recorded here is
an honest out-of-sample test.  The average loss over the whole stream is the
classic "progressive loss" of online learning.

Two views are kept:

    window      – the most recent W records (deque, maxlen=W), which shows
                  current model quality and makes concept drift visible
    cumulative  – running totals over everything ever recorded

Metrics computed over the window
────────────────────────────────
    mean_loss  = Σ loss / W
    rmse       = sqrt(Σ (label − prediction)² / W)
    accuracy   = fraction with sign(prediction) == label      (binary labels only)
    auc        = ROC-AUC of prediction vs label               (both classes present,
                                                               finite predictions)

Binary labels may be {−1, +1} or {0, 1}; when a 0 label is in the window
the prediction is thresholded at 0.5 instead of 0, unless an explicit
threshold was given.
"""

import math
from collections import deque
from typing import NamedTuple

import numpy as np
from sklearn.metrics import roc_auc_score


class WindowMetrics(NamedTuple):
    """Snapshot of metrics over the current window.

    accuracy and auc are None when the labels are not binary, and auc is
    also None when only one class is in the window.
    """
    window_size : int
    mean_loss   : float
    rmse        : float
    accuracy    : float | None
    auc         : float | None


class SlidingWindowEvaluator:
    """Track progressive-validation metrics over a rolling window.

    Parameters
    ----------
    window_size : int, default=1000
        Number of most-recent records to keep.  Must be ≥ 2.
    threshold : float | None, default=None
        Decision threshold for accuracy.  None infers it from the labels:
        0.5 when a 0 label is in the window, otherwise 0.
    """

    def __init__(self, window_size: int = 1000, threshold: float | None = None):
        if window_size < 2:
            raise ValueError("window_size must be ≥ 2.")

        self.window_size = window_size
        self.threshold   = threshold

        # each entry is (prediction, label, loss)
        self._buffer: deque = deque(maxlen=window_size)

        self._total_seen : int   = 0
        self._total_loss : float = 0.0
        self._total_sq   : float = 0.0

    # ── recording ─────────────────────────────────────────────────────────

    def record(self, prediction: float, label: float, loss: float = 0.0) -> None:
        self._buffer.append((float(prediction), float(label), float(loss)))
        self._total_seen += 1
        self._total_loss += float(loss)
        self._total_sq   += (float(label) - float(prediction)) ** 2

    # ── metrics ───────────────────────────────────────────────────────────

    def get_metrics(self) -> WindowMetrics:
        if len(self._buffer) == 0:
            return WindowMetrics(window_size=0, mean_loss=0.0, rmse=0.0, accuracy=None, auc=None)

        preds, labels, losses = (np.array(col, dtype=np.float64) for col in zip(*self._buffer))
        n = len(self._buffer)

        mean_loss = float(losses.mean())
        rmse      = float(np.sqrt(np.mean((labels - preds) ** 2)))

        accuracy, auc = None, None
        positive = self._positive_mask(labels)
        if positive is not None:
            threshold = self.threshold
            if threshold is None:
                threshold = 0.5 if np.any(labels == 0) else 0.0
            accuracy  = float(np.mean((preds > threshold) == positive))
            if positive.any() and not positive.all() and np.all(np.isfinite(preds)):
                auc = float(roc_auc_score(positive.astype(np.int32), preds))

        return WindowMetrics(
            window_size=n,
            mean_loss=mean_loss,
            rmse=rmse,
            accuracy=accuracy,
            auc=auc,
        )

    # ── cumulative (full-history) view ────────────────────────────────────

    @property
    def cumulative_loss(self) -> float:
        """Average loss over ALL records (progressive loss)."""
        if self._total_seen == 0:
            return 0.0
        return self._total_loss / self._total_seen

    @property
    def cumulative_rmse(self) -> float:
        if self._total_seen == 0:
            return 0.0
        return math.sqrt(self._total_sq / self._total_seen)

    @property
    def total_seen(self) -> int:
        return self._total_seen

    # ── helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _positive_mask(labels: np.ndarray) -> np.ndarray | None:
        """Boolean mask of positive labels, or None if labels are not binary."""
        values = set(np.unique(labels).tolist())
        if values <= {-1.0, 1.0} or values <= {0.0, 1.0}:
            return labels > 0
        return None

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return (
            f"SlidingWindowEvaluator(window_size={self.window_size}, "
            f"current={len(self._buffer)}, total_seen={self._total_seen})"
        )
