"""
online_vs_sgd.py
────────────────
Orchestrator that runs the scale-invariant learner and a scikit-learn SGD
learner over the same stream, plus an optional batch baseline, and returns
comparable results.

Why these three?
────────────────
    ScInOL       – sees each row once, in order, on RAW features.  No
                   step size to tune, no scaler.
    SGD          – sklearn SGDClassifier / SGDRegressor fed one row at a
                   time with partial_fit(), also on RAW features.  With badly
                   scaled columns this is where plain SGD struggles or
                   diverges.
    Batch        – sklearn LogisticRegression / Ridge on a standardised
                   train split, scored once on a held-out test split.  The
                   accuracy ceiling for a linear model on this data.

Both online learners are evaluated progressively: the prediction for row t
is made before row t is learned.

This module does NO plotting; drivers/run_comparison.py owns matplotlib.
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.linear_model import LogisticRegression, Ridge, SGDClassifier, SGDRegressor
from sklearn.metrics import accuracy_score, mean_squared_error, roc_auc_score
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler

from core.feature_hashing import FeatureHasher
from core.losses import get_loss
from core.scale_invariant_learner import ScaleInvariantLearner
from core.sliding_window_evaluator import SlidingWindowEvaluator


logger = logging.getLogger(__name__)

# our loss name → (task, sklearn SGD loss)
SGD_LOSSES = {
    "logistic": ("classification", "log_loss"),
    "hinge":    ("classification", "hinge"),
    "squared":  ("regression",     "squared_error"),
    "absolute": ("regression",     "epsilon_insensitive"),
}

HISTORY_KEYS = ("step", "mean_loss", "rmse", "accuracy", "auc")


def _new_history() -> dict:
    return {key: [] for key in HISTORY_KEYS}


def _snapshot(hist: dict, step: int, evaluator: SlidingWindowEvaluator) -> None:
    m = evaluator.get_metrics()
    hist["step"].append(step)
    hist["mean_loss"].append(m.mean_loss)
    hist["rmse"].append(m.rmse)
    hist["accuracy"].append(m.accuracy)
    hist["auc"].append(m.auc)


# ─────────────────────────────────────────────────────────────────────────────
# Scale-invariant online runner
# ─────────────────────────────────────────────────────────────────────────────

def run_online(
    X: np.ndarray,
    y: np.ndarray,
    loss: str = "logistic",
    bits: int = 18,
    L: float = 1.0,
    learning_rate: float = 1.0,
    clip_gradient: bool = True,
    add_bias: bool = True,
    window_size: int = 500,
    record_every: int = 1,
    feature_names: list[str] | None = None,
) -> dict:
    """Progressive loop for ScaleInvariantLearner: update() → record.

    Returns
    -------
    dict with keys: model, hasher, evaluator, predictions, histories
    """
    n_samples, n_features = X.shape
    names = feature_names or [f"feature_{i}" for i in range(n_features)]

    hasher    = FeatureHasher(bits, add_bias=add_bias)
    model     = ScaleInvariantLearner(bits, L=L, initial_learning_rate=learning_rate)
    model.set_loss(get_loss(loss))
    model.set_clip_gradient(clip_gradient)
    evaluator = SlidingWindowEvaluator(window_size=window_size)

    hist        = _new_history()
    predictions = np.empty(n_samples, dtype=np.float64)

    for t in range(n_samples):
        sample = hasher.hash_sample(dict(zip(names, X[t])), float(y[t]))
        pred   = model.update(sample)
        predictions[t] = pred
        evaluator.record(pred, sample.label, model.loss.loss_value(pred, sample.label))

        if (t + 1) % record_every == 0:
            _snapshot(hist, t + 1, evaluator)

    return dict(
        model=model,
        hasher=hasher,
        evaluator=evaluator,
        predictions=predictions,
        histories=hist,
    )


# ─────────────────────────────────────────────────────────────────────────────
# sklearn SGD online runner
# ─────────────────────────────────────────────────────────────────────────────

def run_sgd(
    X: np.ndarray,
    y: np.ndarray,
    loss: str = "logistic",
    window_size: int = 500,
    record_every: int = 1,
    seed: int = 42,
    **sgd_params,
) -> dict:
    """Progressive loop for sklearn SGD via partial_fit, one row at a time.

    If SGD's weights overflow (sklearn raises ValueError), the model is
    frozen and later predictions are NaN; ``diverged_at`` records the step.

    Returns
    -------
    dict with keys: model, evaluator, predictions, histories, diverged_at
    """
    if loss not in SGD_LOSSES:
        raise ValueError(f"No SGD counterpart for loss '{loss}'; expected one of {tuple(SGD_LOSSES)}.")
    task, sk_loss = SGD_LOSSES[loss]
    loss_fn = get_loss(loss)

    if task == "classification":
        model = SGDClassifier(loss=sk_loss, random_state=seed, **sgd_params)
        fit_kwargs = {"classes": np.array([-1, 1])}
    else:
        params = {"epsilon": 0.0} if sk_loss == "epsilon_insensitive" else {}
        params.update(sgd_params)
        model = SGDRegressor(loss=sk_loss, random_state=seed, **params)
        fit_kwargs = {}

    evaluator   = SlidingWindowEvaluator(window_size=window_size)
    hist        = _new_history()
    predictions = np.full(X.shape[0], np.nan)
    fitted      = False
    diverged_at = None

    for t in range(X.shape[0]):
        x_row = X[t:t + 1]
        label = float(y[t])

        if diverged_at is not None:
            pred = np.nan
        elif fitted:
            pred = float(np.ravel(model.decision_function(x_row) if task == "classification"
                                  else model.predict(x_row))[0])
        else:
            pred = 0.0
        predictions[t] = pred
        evaluator.record(pred, label, loss_fn.loss_value(pred, label))

        if diverged_at is None:
            try:
                model.partial_fit(x_row, np.array([y[t]]), **fit_kwargs)
                fitted = True
            except ValueError as exc:
                diverged_at = t + 1
                logger.warning("SGD diverged at step %d: %s", diverged_at, exc)

        if (t + 1) % record_every == 0:
            _snapshot(hist, t + 1, evaluator)

    return dict(
        model=model,
        evaluator=evaluator,
        predictions=predictions,
        histories=hist,
        diverged_at=diverged_at,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Batch baseline
# ─────────────────────────────────────────────────────────────────────────────

def run_batch(
    X: np.ndarray,
    y: np.ndarray,
    task: str = "classification",
    test_size: float = 0.2,
    seed: int = 42,
) -> dict:
    """Fit a standardised sklearn linear model on a train split, score on test.

    Returns
    -------
    dict with keys: model, scaler, rmse, and for classification accuracy, auc
    """
    stratify = y if task == "classification" else None
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=test_size, random_state=seed, stratify=stratify
    )

    # scale on train only
    scaler    = StandardScaler()
    X_train_s = scaler.fit_transform(X_train)
    X_test_s  = scaler.transform(X_test)

    if task == "classification":
        model = LogisticRegression(max_iter=1000, random_state=seed, solver="lbfgs", C=1.0)
        model.fit(X_train_s, y_train)
        scores = model.decision_function(X_test_s)
        return dict(
            model=model,
            scaler=scaler,
            accuracy=float(accuracy_score(y_test, model.predict(X_test_s))),
            auc=float(roc_auc_score(y_test, scores)),
            rmse=float(np.sqrt(mean_squared_error(y_test, scores))),
        )

    model = Ridge(alpha=1.0, random_state=seed)
    model.fit(X_train_s, y_train)
    return dict(
        model=model,
        scaler=scaler,
        accuracy=None,
        auc=None,
        rmse=float(np.sqrt(mean_squared_error(y_test, model.predict(X_test_s)))),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Top-level: run all three on one CSV
# ─────────────────────────────────────────────────────────────────────────────

def compare(
    csv_path: str | Path,
    loss: str = "logistic",
    bits: int = 18,
    L: float = 1.0,
    learning_rate: float = 1.0,
    window_size: int = 500,
    test_size: float = 0.2,
    seed: int = 42,
    record_every: int = 1,
    with_batch: bool = True,
) -> dict:
    """Load a CSV and run ScInOL, SGD and (optionally) batch on it.

    Returns
    -------
    dict with keys: "scinol", "sgd", "batch" (or None), "csv_path", "loss"
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV not found: {csv_path}")

    df = pd.read_csv(csv_path)
    feature_cols = [c for c in df.columns if c != "label"]
    X = df[feature_cols].to_numpy(dtype=np.float64)
    y = df["label"].to_numpy()

    task, _ = SGD_LOSSES[loss] if loss in SGD_LOSSES else ("regression", None)
    if task == "classification":
        y = np.where(y > 0, 1, -1).astype(np.int32)
    else:
        y = y.astype(np.float64)

    logger.info("comparing on %s: %d rows, %d features, loss=%s", csv_path, *X.shape, loss)

    scinol = run_online(
        X, y, loss=loss, bits=bits, L=L, learning_rate=learning_rate,
        window_size=window_size, record_every=record_every, feature_names=feature_cols,
    )
    sgd   = run_sgd(X, y, loss=loss, window_size=window_size, record_every=record_every, seed=seed)
    batch = run_batch(X, y, task=task, test_size=test_size, seed=seed) if with_batch else None

    return dict(
        scinol=scinol,
        sgd=sgd,
        batch=batch,
        csv_path=str(csv_path),
        loss=loss,
    )
