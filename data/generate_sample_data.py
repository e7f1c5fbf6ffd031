"""
generate_sample_data.py
───────────────────────
Synthetic streaming-data factory for the scale-invariant learner.

What it generates
─────────────────
A CSV with columns:

    feature_0, feature_1, ..., feature_{n-1}, label

Design knobs
────────────
    task            – "classification" (labels ±1) or "regression" (real labels)
    feature_scales  – per-column multiplier applied AFTER the labels are
                      drawn.  Badly scaled columns (e.g. 1e-3 … 1e3) leave
                      the learning problem unchanged but wreck plain SGD;
                      a scale-invariant learner should not notice.
    sparsity        – fraction of entries zeroed out (streamed samples then
                      carry only their non-zero coordinates)
    noise           – std of Gaussian noise added to the raw score
    concept_drift   – the true weight vector flips sign at the midpoint
    seed            – full reproducibility

How the labels are generated
────────────────────────────
1.  Draw a weight vector  w  ∈ Rⁿ from N(0, 1), normalised to unit length.
2.  Draw features         X  from N(0, I), zero a `sparsity` fraction.
3.  Compute scores        z  = X · w + N(0, noise²)   (w negated after mid
                                                        when drifting)
4.  classification: y = +1 if z > 0 else −1;  regression: y = z.
5.  Rescale columns       X ← X · diag(feature_scales).
"""

import numpy as np
import pandas as pd
from pathlib import Path


VALID_TASKS = ("classification", "regression")


def generate(
    filepath: str | Path,
    n_samples: int = 5000,
    n_features: int = 5,
    task: str = "classification",
    feature_scales=None,
    sparsity: float = 0.0,
    noise: float = 1.0,
    concept_drift: bool = False,
    seed: int = 42,
) -> pd.DataFrame:
    """Generate a synthetic streaming CSV and return it as a DataFrame.

    Parameters
    ----------
    filepath : str | Path
        Where to write the CSV.  Parent directories are created.
    n_samples : int, default=5000
    n_features : int, default=5
    task : {'classification', 'regression'}, default='classification'
    feature_scales : float | array-like of shape (n_features,) | None
        Column multipliers.  None means all ones.
    sparsity : float in [0, 1), default=0.0
        Fraction of feature entries set to zero.
    noise : float, default=1.0
        Std of score noise.
    concept_drift : bool, default=False
        If True, the true weight vector flips sign at the midpoint.
    seed : int, default=42

    Returns
    -------
    df : pd.DataFrame
        The generated data (also written to *filepath*).

    Raises
    ------
    ValueError
        On invalid parameter combinations.
    """
    # ── validate ──────────────────────────────────────────────────────────
    if n_samples < 10:
        raise ValueError("n_samples must be ≥ 10.")
    if n_features < 1:
        raise ValueError("n_features must be ≥ 1.")
    if task not in VALID_TASKS:
        raise ValueError(f"task must be one of {VALID_TASKS}, got '{task}'.")
    if not (0.0 <= sparsity < 1.0):
        raise ValueError("sparsity must be in [0, 1).")
    if noise < 0:
        raise ValueError("noise must be ≥ 0.")

    scales = np.ones(n_features) if feature_scales is None else np.broadcast_to(
        np.asarray(feature_scales, dtype=np.float64), (n_features,)
    )
    if np.any(scales <= 0):
        raise ValueError("feature_scales must all be > 0.")

    rng = np.random.default_rng(seed)

    # ── true weight vector ────────────────────────────────────────────────
    w = rng.standard_normal(n_features)
    w = w / (np.linalg.norm(w) + 1e-10)

    # ── features ──────────────────────────────────────────────────────────
    X = rng.standard_normal((n_samples, n_features))
    if sparsity > 0:
        X[rng.random((n_samples, n_features)) < sparsity] = 0.0

    # ── scores, with optional drift ───────────────────────────────────────
    mid = n_samples // 2
    w_rows = np.tile(w, (n_samples, 1))
    if concept_drift:
        w_rows[mid:] = -w
    z = np.einsum("ij,ij->i", X, w_rows) + rng.normal(0, noise, size=n_samples)

    if task == "classification":
        y = np.where(z > 0, 1, -1).astype(np.int32)
    else:
        y = z.astype(np.float64)

    # ── badly scaled columns; labels already fixed ────────────────────────
    X = X * scales

    col_names = [f"feature_{i}" for i in range(n_features)]
    df = pd.DataFrame(X, columns=col_names)
    df["label"] = y

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(filepath, index=False)

    return df


# ─────────────────────────────────────────────────────────────────────────────
# Convenience: the default sample CSVs used by the drivers
# ─────────────────────────────────────────────────────────────────────────────

def generate_defaults(data_dir: str | Path = "data/samples") -> dict[str, Path]:
    """Create the standard CSVs the project uses out of the box.

    Files
    -----
    basic.csv       – 5 000 rows, 5 features, ±1 labels, unit scales
    rescaled.csv    – same problem, columns scaled by 1e-3 … 1e3
    drifted.csv     – unit scales, concept drift at the midpoint
    regression.csv  – real-valued labels, columns scaled by 1e-2 … 1e2, 30 % zeros
    """
    data_dir = Path(data_dir)
    paths = {name: data_dir / f"{name}.csv" for name in ("basic", "rescaled", "drifted", "regression")}

    generate(paths["basic"], n_samples=5000, n_features=5, seed=42)
    generate(
        paths["rescaled"], n_samples=5000, n_features=5,
        feature_scales=np.logspace(-3, 3, 5), seed=42,
    )
    generate(paths["drifted"], n_samples=5000, n_features=5, concept_drift=True, seed=42)
    generate(
        paths["regression"], n_samples=5000, n_features=5, task="regression",
        feature_scales=np.logspace(-2, 2, 5), sparsity=0.3, noise=0.1, seed=42,
    )
    return paths


if __name__ == "__main__":
    paths = generate_defaults()
    for name, path in paths.items():
        print(f"  wrote {name:>10} → {path}")
