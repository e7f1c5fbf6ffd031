"""
feature_hashing.py
──────────────────
The hashing trick: map arbitrary feature names into the learner's fixed
index space [0, 2**bits).

Uses scikit-learn's MurmurHash3 (the same hash behind HashingVectorizer and
FeatureHasher), so indices are stable across runs and processes, unlike
Python's salted hash().

Collisions
──────────
Two names may land on the same index.  Their values are summed, so the
resulting SparseVector never carries duplicate indices (the learner's
contract).  Entries that sum to exactly zero are dropped.
"""

from typing import Mapping

from sklearn.utils import murmurhash3_32

from core.sample import Sample
from core.sparse_vector import SparseVector


BIAS_FEATURE = "__bias__"


class FeatureHasher:
    """Hash named features into a 2**bits coordinate space.

    Parameters
    ----------
    bits : int
        Must match the learner's ``bits``.
    seed : int, default=0
        MurmurHash3 seed.
    add_bias : bool, default=False
        Append a constant feature (value 1.0) to every sample.
    """

    def __init__(self, bits: int, seed: int = 0, add_bias: bool = False):
        if not (0 <= bits <= 31):
            raise ValueError(f"bits must be in [0, 31], got {bits}.")
        self.bits      = bits
        self.size_hash = 1 << bits
        self.seed      = seed
        self.add_bias  = add_bias
        self._mask     = self.size_hash - 1

    def index_of(self, name: str) -> int:
        return murmurhash3_32(name, seed=self.seed, positive=True) & self._mask

    def transform(self, features: Mapping[str, float]) -> SparseVector:
        """Hash ``{name: value}`` into a SparseVector."""
        acc: dict[int, float] = {}
        for name, value in features.items():
            value = float(value)
            if value == 0.0:
                continue
            i = self.index_of(str(name))
            acc[i] = acc.get(i, 0.0) + value
        if self.add_bias:
            i = self.index_of(BIAS_FEATURE)
            acc[i] = acc.get(i, 0.0) + 1.0
        return SparseVector.from_dict({i: v for i, v in acc.items() if v != 0.0})

    def hash_sample(
        self,
        features: Mapping[str, float],
        label: float,
        weight: float = 1.0,
        tag: str | None = None,
    ) -> Sample:
        return Sample(self.transform(features), float(label), float(weight), tag)

    def __repr__(self) -> str:
        return f"FeatureHasher(bits={self.bits}, seed={self.seed}, bias={self.add_bias})"
