"""
stream_loader.py
────────────────
Row-by-row CSV reader that turns a file into a stream of Samples.

Pipeline position
─────────────────
    CSV on disk  →  StreamLoader  →  Sample  →  ScaleInvariantLearner.update()
                        │
                        └── FeatureHasher: column name → hashed index,
                            zero cells dropped (samples are sparse)

No scaling step: the learner is invariant to per-feature rescaling, so raw
column values are streamed as they are.

Design decisions
────────────────
* chunk_size defaults to 1 (true single-row streaming).
* feature_columns default to every column that is neither the label nor
  the weight column.
* signed_labels maps {0, 1} labels to {−1, +1} for the logistic and hinge
  losses.
* stream() is re-entrant: each call restarts from the top of the file.
"""

import logging
from pathlib import Path
from typing import Iterator

import numpy as np
import pandas as pd

from core.feature_hashing import FeatureHasher
from core.sample import Sample


logger = logging.getLogger(__name__)


class StreamLoader:
    """Iterate over a CSV one row at a time, yielding hashed Samples.

    Parameters
    ----------
    filepath : str | Path
        Path to the CSV file.  Must exist.
    hasher : FeatureHasher
        Maps column names into the learner's index space.
    label_column : str, default='label'
    weight_column : str | None, default=None
        Optional per-row instance weight column.
    feature_columns : list[str] | None, default=None
    chunk_size : int, default=1
        Rows read from disk per I/O call.  Rows are still yielded one by one.
    signed_labels : bool, default=False
        Map label 0 → −1 (any other value is kept).
    """

    def __init__(
        self,
        filepath: str | Path,
        hasher: FeatureHasher,
        label_column: str = "label",
        weight_column: str | None = None,
        feature_columns: list[str] | None = None,
        chunk_size: int = 1,
        signed_labels: bool = False,
    ):
        self.filepath      = Path(filepath)
        self.hasher        = hasher
        self.label_column  = label_column
        self.weight_column = weight_column
        self.chunk_size    = chunk_size
        self.signed_labels = signed_labels

        if not self.filepath.exists():
            raise FileNotFoundError(f"CSV not found: {self.filepath}")
        if chunk_size < 1:
            raise ValueError("chunk_size must be ≥ 1.")

        header = pd.read_csv(self.filepath, nrows=0).columns.tolist()

        if label_column not in header:
            raise ValueError(
                f"Label column '{label_column}' not found in {self.filepath}. "
                f"Available columns: {header}"
            )
        if weight_column is not None and weight_column not in header:
            raise ValueError(f"Weight column '{weight_column}' not found in {self.filepath}.")

        reserved = {label_column, weight_column}
        if feature_columns is not None:
            missing = set(feature_columns) - set(header)
            if missing:
                raise ValueError(f"Feature columns {missing} not found in {self.filepath}.")
            self.feature_columns = list(feature_columns)
        else:
            self.feature_columns = [c for c in header if c not in reserved]

        if len(self.feature_columns) == 0:
            raise ValueError("No feature columns detected.")

        self.n_features = len(self.feature_columns)

    # ── main generator ────────────────────────────────────────────────────

    def stream(self) -> Iterator[Sample]:
        """Yield one Sample per data row."""
        usecols = self.feature_columns + [self.label_column]
        if self.weight_column is not None:
            usecols.append(self.weight_column)

        reader = pd.read_csv(self.filepath, chunksize=self.chunk_size, usecols=usecols)

        row_number = 0
        for chunk in reader:
            features = chunk[self.feature_columns].to_numpy(dtype=np.float64)
            labels   = chunk[self.label_column].to_numpy(dtype=np.float64)
            weights  = (
                chunk[self.weight_column].to_numpy(dtype=np.float64)
                if self.weight_column is not None else np.ones(len(chunk))
            )
            for x, y, wt in zip(features, labels, weights):
                row_number += 1
                if self.signed_labels and y == 0:
                    y = -1.0
                yield self.hasher.hash_sample(
                    dict(zip(self.feature_columns, x)), y, wt, tag=str(row_number),
                )

        logger.debug("streamed %d rows from %s", row_number, self.filepath)

    def __iter__(self) -> Iterator[Sample]:
        return self.stream()

    def count_rows(self) -> int:
        """Total number of data rows, read in chunks so memory stays flat."""
        total = 0
        for chunk in pd.read_csv(self.filepath, chunksize=10_000, usecols=[self.label_column]):
            total += len(chunk)
        return total

    def __repr__(self) -> str:
        return (
            f"StreamLoader(file='{self.filepath.name}', "
            f"features={self.n_features}, chunk_size={self.chunk_size}, {self.hasher!r})"
        )
