"""
sparse_vector.py
────────────────
Sparse (index, value) vectors over a fixed-size hashed coordinate space.

Where it is used
────────────────
    * sample features   – only the non-zero coordinates of one example
    * weight export     – ScaleInvariantLearner.get_weights()
    * persisted state   – each dense state array is stored as one of these,
                          omitting entries equal to the array's fill value

Storage is two parallel NumPy arrays (int64 indices, float64 values) so a
vector can be used directly for fancy indexing into the learner's dense
arrays without any Python-level loop.
"""

import numpy as np
from typing import Iterator, Mapping, Tuple


class SparseVector:
    """Immutable-by-convention sparse vector.

    Parameters
    ----------
    indices : array-like of int
        Coordinate indices.  Must be unique.
    values : array-like of float
        Value for each index, same length as *indices*.
    """

    __slots__ = ("indices", "values")

    def __init__(self, indices=(), values=()):
        indices = np.asarray(indices, dtype=np.int64).ravel()
        values  = np.asarray(values,  dtype=np.float64).ravel()

        if indices.shape[0] != values.shape[0]:
            raise ValueError(
                f"indices and values must have the same length, "
                f"got {indices.shape[0]} and {values.shape[0]}."
            )
        if np.unique(indices).shape[0] != indices.shape[0]:
            raise ValueError("SparseVector indices must be unique.")

        self.indices: np.ndarray = indices
        self.values : np.ndarray = values

    # ── constructors ──────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, mapping: Mapping[int, float]) -> "SparseVector":
        """Build from ``{index: value}``.  Key order is preserved."""
        return cls(list(mapping.keys()), list(mapping.values()))

    @classmethod
    def from_dense(cls, dense: np.ndarray, default: float = 0.0) -> "SparseVector":
        """Keep every entry of *dense* that differs from *default*.

        NaN entries are always kept (NaN never compares equal to the
        default), so non-finite state survives a sparse round-trip.
        """
        dense = np.asarray(dense, dtype=np.float64).ravel()
        mask  = dense != default
        idx   = np.flatnonzero(mask)
        return cls(idx, dense[idx])

    # ── conversions ───────────────────────────────────────────────────────

    def to_dense(self, size: int, fill: float = 0.0) -> np.ndarray:
        """Expand into a dense array of length *size*; absent entries get *fill*."""
        if size < 0:
            raise ValueError("size must be ≥ 0.")
        if len(self) and (self.indices.min() < 0 or self.max_index() >= size):
            raise IndexError(
                f"SparseVector index out of range for dense size {size}: "
                f"[{self.indices.min()}, {self.indices.max()}]"
            )
        dense = np.full(size, fill, dtype=np.float64)
        dense[self.indices] = self.values
        return dense

    def to_dict(self) -> dict:
        return {int(i): float(v) for i, v in zip(self.indices, self.values)}

    # ── arithmetic ────────────────────────────────────────────────────────

    def dot(self, dense: np.ndarray) -> float:
        """Dot product against a dense vector, reading only our indices."""
        return float(np.dot(self.values, dense[self.indices]))

    def scaled(self, factor: float) -> "SparseVector":
        return SparseVector(self.indices.copy(), self.values * factor)

    def max_index(self) -> int:
        """Largest index, or -1 for an empty vector."""
        return int(self.indices.max()) if len(self) else -1

    # ── container protocol ────────────────────────────────────────────────

    def items(self) -> Iterator[Tuple[int, float]]:
        for i, v in zip(self.indices, self.values):
            yield int(i), float(v)

    def __iter__(self):
        return self.items()

    def __len__(self) -> int:
        return int(self.indices.shape[0])

    def __eq__(self, other) -> bool:
        if not isinstance(other, SparseVector):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(frozenset(self.to_dict().items()))

    def __repr__(self) -> str:
        preview = ", ".join(f"{i}: {v:.4g}" for i, v in list(self.items())[:5])
        more    = ", …" if len(self) > 5 else ""
        return f"SparseVector({{{preview}{more}}}, nnz={len(self)})"
