"""
scale_invariant_learner.py
──────────────────────────
Scale-invariant online linear learner (ScInOL), updated one sample at a time.

Reference
─────────
    M. Kempka, W. Kotłowski, M. K. Warmuth,
    "Adaptive scale-invariant online algorithms for learning linear models",
    ICML 2019.

Per-coordinate state
────────────────────
Every hashed coordinate i carries five numbers, stored together in one NumPy
structured array of length size_hash:

    weight[i]                 cached coefficient, recomputed when i is touched
    sum_gradient[i]           G_i  = Σ x_i · g
    sum_squared_gradient[i]   S2_i = Σ (x_i · g)²
    max_feature[i]            M_i  = max(ε, L·|x_i| seen so far)
    learning_rate[i]          η_i  (starts at the configured value, then
                                    accumulates x_i · g · w_i)

Update rule (one sample, touched coordinates only)
──────────────────────────────────────────────────
    M_i     ← max(M_i, L·|x_i|)
    d_i     = sqrt(S2_i + M_i²)
    θ_i     = G_i / d_i
    w_i     = sign(θ_i) · min(1, |θ_i|) / (2 d_i) · η_i
    ŷ       = Σ x_i · w_i
    g       = clip(loss.negative_gradient(ŷ, y, weight), −L, L)
    G_i    += x_i · g
    S2_i   += (x_i · g)²
    η_i    += x_i · g · w_i            ← w_i from THIS call, before G/S2 moved

The min(1, |θ|) term caps the implied coefficient however large G grows, and
the 1/d term shrinks the step as gradient energy or observed feature
magnitude grows.  Multiplying a feature by c > 0 multiplies M, G and d by c,
leaves θ and η unchanged, and divides w by c: predictions do not move.

Only the coordinates present in the sample are read or written, so the cost
of update() is proportional to the number of non-zero features, never to
size_hash.
"""

import logging

import numpy as np

from core.losses import Loss
from core.sample import Sample
from core.sparse_vector import SparseVector


logger = logging.getLogger(__name__)

# floor for max_feature so the weight denominator is never exactly zero
EPSILON = 1e-15

MAX_BITS = 31

COORDINATE_DTYPE = np.dtype([
    ("weight",               np.float64),
    ("sum_gradient",         np.float64),
    ("sum_squared_gradient", np.float64),
    ("max_feature",          np.float64),
    ("learning_rate",        np.float64),
])

# fill value of each field for a coordinate that was never touched
# (learning_rate is special: it is reset to the configured initial value)
FIELD_DEFAULTS = {
    "weight":               0.0,
    "sum_gradient":         0.0,
    "sum_squared_gradient": 0.0,
    "max_feature":          EPSILON,
    "learning_rate":        0.0,
}


class ScaleInvariantLearner:
    """Streaming linear model with coordinate-wise scale-invariant updates.

    Parameters
    ----------
    bits : int
        The hash space has ``2 ** bits`` coordinates.  Must be in [0, 31].
    L : float, default=1.0
        Clip bound.  Scales the running max of |x_i| and, when gradient
        clipping is on, bounds the negative gradient to [-L, L].
    initial_learning_rate : float, default=1.0
        Initial value of every per-coordinate learning rate.

    Attributes
    ----------
    size_hash : int
        Number of coordinates (``2 ** bits``).
    clip_gradient : bool
        Whether the loss gradient is clamped into [-L, L].  Default True.
    n_updates : int
        Number of update() calls applied so far.
    """

    def __init__(self, bits: int, L: float = 1.0, initial_learning_rate: float = 1.0):
        # ── validate ──────────────────────────────────────────────────────
        if isinstance(bits, bool) or not isinstance(bits, (int, np.integer)):
            raise ValueError(f"bits must be an integer, got {bits!r}.")
        if not (0 <= bits <= MAX_BITS):
            raise ValueError(f"bits must be in [0, {MAX_BITS}], got {bits}.")
        self._check_L(L)

        # ── hyper-parameters ──────────────────────────────────────────────
        self.bits          = int(bits)
        self.size_hash     = 1 << self.bits
        self.L             = float(L)
        self.clip_gradient = True
        self._loss: Loss | None = None

        # ── coordinate state, allocated once ──────────────────────────────
        self._coords = np.zeros(self.size_hash, dtype=COORDINATE_DTYPE)
        self._coords["max_feature"] = EPSILON
        self.set_learning_rate(initial_learning_rate)

        self.n_updates: int = 0

    # ── configuration ─────────────────────────────────────────────────────

    def set_loss(self, loss: Loss) -> None:
        self._loss = loss

    def get_loss(self) -> Loss | None:
        return self._loss

    loss = property(get_loss, set_loss)

    def set_clip_gradient(self, flag: bool) -> None:
        self.clip_gradient = bool(flag)

    def set_L(self, L: float) -> None:
        self._check_L(L)
        self.L = float(L)

    def set_learning_rate(self, value: float) -> None:
        """Overwrite every per-coordinate learning rate with *value*.

        Discards whatever adaptation the update rule has accumulated.
        """
        self._coords["learning_rate"] = value
        logger.info("learning rate reset to %g on %d coordinates", value, self.size_hash)

    # ── core operations ───────────────────────────────────────────────────

    def update(self, sample: Sample) -> float:
        """Learn from one sample and return the prediction made before learning.

        Parameters
        ----------
        sample : Sample
            Indices must lie in [0, size_hash); duplicates are impossible by
            construction of SparseVector.

        Returns
        -------
        prediction : float — ŷ computed from the freshly recomputed weights
        """
        if self._loss is None:
            raise RuntimeError("No loss function set; call set_loss() before update().")

        idx, x = self._touched(sample.features)
        c      = self._coords

        # 1. recompute weights of the touched coordinates
        m = np.maximum(c["max_feature"][idx], self.L * np.abs(x))
        c["max_feature"][idx] = m

        denominator = np.sqrt(c["sum_squared_gradient"][idx] + m * m)
        theta       = c["sum_gradient"][idx] / denominator
        w           = (np.sign(theta) * np.minimum(1.0, np.abs(theta))
                       / (2.0 * denominator) * c["learning_rate"][idx])
        c["weight"][idx] = w

        prediction = float(np.dot(x, w))

        # 2-3. negative gradient, optionally clipped
        neg_grad = float(self._loss.negative_gradient(prediction, sample.label, sample.weight))
        if self.clip_gradient:
            neg_grad = float(np.clip(neg_grad, -self.L, self.L))

        # 4. fold the gradient back; learning rate uses w from step 1
        step = x * neg_grad
        c["sum_gradient"][idx]         += step
        c["sum_squared_gradient"][idx] += step ** 2
        c["learning_rate"][idx]        += step * w

        self.n_updates += 1
        logger.debug(
            "update %d: prediction=%.6g negative_gradient=%.6g touched=%d",
            self.n_updates, prediction, neg_grad, idx.shape[0],
        )
        return prediction

    def predict(self, sample: Sample | SparseVector) -> float:
        """Dot product with the cached weights.  No state is touched."""
        features = sample.features if isinstance(sample, Sample) else sample
        idx, x = self._touched(features)
        return float(np.dot(x, self._coords["weight"][idx]))

    # ── weight export ─────────────────────────────────────────────────────

    def get_weights(self) -> SparseVector:
        """Non-zero weights as a SparseVector; absent indices mean zero."""
        return SparseVector.from_dense(self._coords["weight"])

    # ── read-only views of the coordinate state (copies) ──────────────────

    @property
    def weights(self) -> np.ndarray:
        return self._coords["weight"].copy()

    @property
    def sum_gradient(self) -> np.ndarray:
        return self._coords["sum_gradient"].copy()

    @property
    def sum_squared_gradient(self) -> np.ndarray:
        return self._coords["sum_squared_gradient"].copy()

    @property
    def max_feature(self) -> np.ndarray:
        return self._coords["max_feature"].copy()

    @property
    def learning_rates(self) -> np.ndarray:
        return self._coords["learning_rate"].copy()

    # ── state export / import ─────────────────────────────────────────────

    def get_state(self) -> dict:
        """Plain-dict snapshot (sparse blocks), see core.persistence."""
        from core.persistence import encode_state
        return encode_state(self)

    def set_state(self, state: dict) -> None:
        """Restore in place from a dict previously returned by get_state()."""
        from core.persistence import restore_into
        restore_into(self, state)

    @classmethod
    def from_state(cls, state: dict, size_hash: int | None = None) -> "ScaleInvariantLearner":
        from core.persistence import decode_state
        return decode_state(state, size_hash=size_hash)

    # ── helpers ───────────────────────────────────────────────────────────

    def _touched(self, features: SparseVector):
        """Validate indices against the hash space before anything is written."""
        idx = features.indices
        if idx.shape[0] and (idx.min() < 0 or features.max_index() >= self.size_hash):
            bad = idx[(idx < 0) | (idx >= self.size_hash)]
            raise IndexError(
                f"Feature index {int(bad[0])} outside hash space [0, {self.size_hash})."
            )
        return idx, features.values

    @staticmethod
    def _check_L(L: float) -> None:
        if not (np.isfinite(L) and L > 0):
            raise ValueError(f"L must be finite and > 0, got {L}.")

    # ── repr ──────────────────────────────────────────────────────────────

    def __repr__(self) -> str:
        return (
            f"ScaleInvariantLearner("
            f"bits={self.bits}, L={self.L}, clip_gradient={self.clip_gradient}, "
            f"loss={self._loss}, updates={self.n_updates})"
        )

    def __str__(self) -> str:
        return f"Using ScInOL\nLoss function = {self._loss}"
