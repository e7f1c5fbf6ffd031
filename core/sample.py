"""
sample.py
─────────
One training example as the learner consumes it: a real-valued label, a
non-negative instance weight, and a sparse feature vector whose indices are
already resolved into the learner's hash space.
"""

from dataclasses import dataclass
from typing import Mapping

from core.sparse_vector import SparseVector


@dataclass(frozen=True)
class Sample:
    """A single streamed example.

    Attributes
    ----------
    features : SparseVector — non-zero (index, value) pairs
    label    : float        — target; ±1 for the classification losses
    weight   : float        — importance weight passed to the loss, default 1.0
    tag      : str | None   — optional identifier carried through for reporting
    """
    features: SparseVector
    label   : float
    weight  : float = 1.0
    tag     : str | None = None

    def __post_init__(self):
        if self.weight < 0:
            raise ValueError(f"Sample weight must be ≥ 0, got {self.weight}.")

    @classmethod
    def from_dict(
        cls,
        features: Mapping[int, float],
        label: float,
        weight: float = 1.0,
        tag: str | None = None,
    ) -> "Sample":
        return cls(SparseVector.from_dict(features), float(label), float(weight), tag)

    def __len__(self) -> int:
        return len(self.features)
