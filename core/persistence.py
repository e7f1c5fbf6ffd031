"""
persistence.py
──────────────
Explicit encode / decode of a ScaleInvariantLearner into a plain, JSON-safe
state-transfer dict.  No pickling: the layout below is the whole contract.

Layout
──────
    {
      "format": "scinol", "version": 1,             ← header
      "bits": 18, "size_hash": 262144,
      "L": 1.0, "clip_gradient": true,
      "loss": "squared" | null, "n_updates": 12345,

      "weight":               {"indices": [...], "values": [...]},   ← body,
      "sum_gradient":         {...},                                    fixed order
      "sum_squared_gradient": {...},
      "max_feature":          {...},
      "learning_rate":        {...}
    }

Every block omits entries equal to the field's fill value (0.0, or EPSILON
for max_feature).  learning_rate is also stored against 0.0, so all of its
entries are present unless they happen to be exactly zero.

Restore is two-phase: the header is read first and size_hash established,
then each block is expanded into a dense array of exactly that length.
"""

import json
import logging
from pathlib import Path

import numpy as np

from core.losses import available_losses, get_loss
from core.scale_invariant_learner import (
    COORDINATE_DTYPE,
    FIELD_DEFAULTS,
    ScaleInvariantLearner,
)
from core.sparse_vector import SparseVector


logger = logging.getLogger(__name__)

STATE_FORMAT  = "scinol"
STATE_VERSION = 1

# persisted block order
BLOCKS = ("weight", "sum_gradient", "sum_squared_gradient", "max_feature", "learning_rate")


# ─────────────────────────────────────────────────────────────────────────────
# Encode
# ─────────────────────────────────────────────────────────────────────────────

def encode_state(learner: ScaleInvariantLearner) -> dict:
    """Header scalars plus the five coordinate arrays in sparse form."""
    loss = learner.get_loss()
    # only registered losses can be rebuilt by name; anything else is left
    # for the caller to re-inject after restore
    loss_name = loss.name if loss is not None and loss.name in available_losses() else None
    if loss is not None and loss_name is None:
        logger.warning("loss %r is not registered; state is saved without it", loss)
    state = {
        "format":        STATE_FORMAT,
        "version":       STATE_VERSION,
        "bits":          learner.bits,
        "size_hash":     learner.size_hash,
        "L":             learner.L,
        "clip_gradient": learner.clip_gradient,
        "loss":          loss_name,
        "n_updates":     learner.n_updates,
    }
    for name in BLOCKS:
        sparse = SparseVector.from_dense(learner._coords[name], default=FIELD_DEFAULTS[name])
        state[name] = {
            "indices": sparse.indices.tolist(),
            "values":  sparse.values.tolist(),
        }
    return state


# ─────────────────────────────────────────────────────────────────────────────
# Decode
# ─────────────────────────────────────────────────────────────────────────────

def _read_header(state: dict, size_hash: int | None) -> dict:
    """Phase 1: validate the header and settle size_hash."""
    if state.get("format") != STATE_FORMAT:
        raise ValueError(f"Not a ScInOL state: format={state.get('format')!r}.")
    if state.get("version") != STATE_VERSION:
        raise ValueError(f"Unsupported state version {state.get('version')!r}.")

    stored = state.get("size_hash")
    if stored is None and size_hash is None:
        raise ValueError("size_hash is unknown: not in the state header and not supplied.")
    if stored is not None and size_hash is not None and int(stored) != int(size_hash):
        raise ValueError(
            f"size_hash mismatch: state was saved with {stored}, restore requested {size_hash}."
        )
    resolved = int(stored if stored is not None else size_hash)

    if "bits" in state:
        bits = int(state["bits"])
        if (1 << bits) != resolved:
            raise ValueError(f"bits={bits} does not match size_hash={resolved}.")
    else:
        if resolved <= 0 or resolved & (resolved - 1):
            raise ValueError(f"size_hash must be a positive power of two, got {resolved}.")
        bits = resolved.bit_length() - 1

    L = float(state.get("L", 1.0))
    ScaleInvariantLearner._check_L(L)

    loss = state.get("loss")
    if loss is not None and loss not in available_losses():
        logger.warning("state names unknown loss %r; restored learner has no loss", loss)
        loss = None

    return {
        "bits":          bits,
        "size_hash":     resolved,
        "L":             L,
        "clip_gradient": bool(state.get("clip_gradient", True)),
        "loss":          loss,
        "n_updates":     int(state.get("n_updates", 0)),
    }


def _read_body(state: dict, size_hash: int) -> np.ndarray:
    """Phase 2: expand every sparse block to a dense array of size_hash."""
    coords = np.zeros(size_hash, dtype=COORDINATE_DTYPE)
    for name in BLOCKS:
        if name not in state:
            raise ValueError(f"State is missing the '{name}' block.")
        block  = state[name]
        sparse = SparseVector(block["indices"], block["values"])
        coords[name] = sparse.to_dense(size_hash, fill=FIELD_DEFAULTS[name])
    return coords


def _apply(learner: ScaleInvariantLearner, header: dict, coords: np.ndarray) -> None:
    """Phase 3: commit. Runs only after header and body both validated."""
    learner.set_L(header["L"])
    learner.set_clip_gradient(header["clip_gradient"])
    learner.n_updates = header["n_updates"]
    learner._coords   = coords
    learner.set_loss(get_loss(header["loss"]) if header["loss"] is not None else None)


def decode_state(state: dict, size_hash: int | None = None) -> ScaleInvariantLearner:
    """Build a new learner from a dict produced by encode_state().

    Parameters
    ----------
    state : dict
    size_hash : int | None
        Required only when the header does not carry it.  If both are
        present they must agree.

    Raises
    ------
    ValueError
        Unknown format/version, unknown or conflicting size_hash, missing block.
    IndexError
        A block references a coordinate outside [0, size_hash).
    """
    header  = _read_header(state, size_hash)
    coords  = _read_body(state, header["size_hash"])
    learner = ScaleInvariantLearner(header["bits"], L=header["L"])
    _apply(learner, header, coords)
    logger.info("restored learner: size_hash=%d updates=%d", header["size_hash"], header["n_updates"])
    return learner


def restore_into(learner: ScaleInvariantLearner, state: dict) -> None:
    """Restore *state* into an existing learner of the same size_hash."""
    header = _read_header(state, learner.size_hash)
    coords = _read_body(state, header["size_hash"])
    _apply(learner, header, coords)
    logger.info("restored learner in place: updates=%d", header["n_updates"])


# ─────────────────────────────────────────────────────────────────────────────
# Files
# ─────────────────────────────────────────────────────────────────────────────

def save_state(learner: ScaleInvariantLearner, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(encode_state(learner), handle)
    logger.info("saved learner state to %s", path)
    return path


def load_state(path: str | Path, size_hash: int | None = None) -> ScaleInvariantLearner:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"State file not found: {path}")
    with open(path, "r", encoding="utf-8") as handle:
        state = json.load(handle)
    return decode_state(state, size_hash=size_hash)
