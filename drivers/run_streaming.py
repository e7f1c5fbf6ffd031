"""
run_streaming.py
────────────────
Live streaming demo: the scale-invariant learner running end-to-end over a
CSV with a real-time terminal dashboard.

What happens when you run this
──────────────────────────────
    1.  A sample CSV is generated (if none is given and it does not exist).
    2.  A StreamLoader hashes each row into a sparse Sample.
    3.  Each Sample flows through:
            update (returns the pre-update prediction)  →  evaluate
    4.  Every *print_every* rows the terminal is cleared and a fresh
        dashboard is printed.
    5.  Optionally the learner state is written to / read from JSON.

Usage
─────
    python -m drivers.run_streaming                                  # defaults
    python -m drivers.run_streaming --csv data/samples/rescaled.csv
    python -m drivers.run_streaming --csv data/samples/regression.csv --loss squared
    python -m drivers.run_streaming --bits 20 --L 2.0 --no-clip
    python -m drivers.run_streaming --save-state models/scinol.json
    python -m drivers.run_streaming --load-state models/scinol.json --csv more.csv
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# ── make project root importable regardless of how this script is invoked ──
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.feature_hashing          import FeatureHasher
from core.losses                   import available_losses, get_loss
from core.persistence              import load_state, save_state
from core.scale_invariant_learner  import ScaleInvariantLearner
from core.sliding_window_evaluator import SlidingWindowEvaluator
from data.generate_sample_data     import generate
from data.stream_loader            import StreamLoader


logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Dashboard renderer
# ─────────────────────────────────────────────────────────────────────────────

BAR_WIDTH = 40


def _bar(value: float, width: int = BAR_WIDTH) -> str:
    """Render a float in [0, 1] as a filled ASCII bar."""
    value  = min(max(value, 0.0), 1.0)
    filled = int(round(value * width))
    return "█" * filled + "░" * (width - filled)


def _fmt(value: float | None, spec: str = ".3f") -> str:
    return format(value, spec) if value is not None else " N/A "


def _render_dashboard(
    step: int,
    total: int,
    metrics,                    # WindowMetrics namedtuple
    cumulative_loss: float,
    cumulative_rmse: float,
    n_weights: int,
    elapsed: float,
) -> str:
    """Return the full dashboard string for one snapshot."""
    pct_done = 100.0 * step / total if total > 0 else 0.0

    lines = [
        "",
        "╔══════════════════════════════════════════════════════════════╗",
        "║        SCALE-INVARIANT ONLINE LEARNER — LIVE STREAM         ║",
        "╠══════════════════════════════════════════════════════════════╣",
        f"║  step {step:>6} / {total:<6}   ({pct_done:5.1f}%)   "
        f"elapsed {elapsed:6.2f}s                ║",
        "╠══════════════════════════════════════════════════════════════╣",
        "║  SLIDING-WINDOW METRICS (progressive)                       ║",
        f"║    accuracy   {_bar(metrics.accuracy or 0.0)}  {_fmt(metrics.accuracy)}  ║",
        f"║    AUC        {_bar(metrics.auc or 0.0)}  {_fmt(metrics.auc)}  ║",
        f"║    mean loss  {metrics.mean_loss:<12.5f} rmse {metrics.rmse:<12.5f}                ║",
        "╠══════════════════════════════════════════════════════════════╣",
        f"║  progressive loss     {cumulative_loss:.5f}                              ║",
        f"║  progressive rmse     {cumulative_rmse:.5f}                              ║",
        f"║  non-zero weights     {n_weights:<8d}                               ║",
        "╚══════════════════════════════════════════════════════════════╝",
        "",
    ]
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Streaming loop
# ─────────────────────────────────────────────────────────────────────────────

def run_stream(
    csv_path: str | Path,
    bits: int = 18,
    L: float = 1.0,
    learning_rate: float = 1.0,
    loss: str = "logistic",
    clip_gradient: bool = True,
    add_bias: bool = True,
    window_size: int = 500,
    print_every: int = 100,
    learner: ScaleInvariantLearner | None = None,
    quiet: bool = False,
) -> dict:
    """Execute the streaming loop and return a summary of what happened.

    Parameters
    ----------
    csv_path      – path to the CSV to stream
    bits          – hash space is 2**bits coordinates
    L             – clip bound
    learning_rate – initial per-coordinate learning rate
    loss          – loss name, see core.losses.available_losses()
    clip_gradient – clamp the negative gradient into [-L, L]
    add_bias      – append a constant feature to every sample
    window_size   – sliding window for metrics
    print_every   – how often (in rows) to refresh the dashboard
    learner       – continue training an existing learner (e.g. restored
                    from --load-state); its bits and loss win
    quiet         – no dashboard output

    Returns
    -------
    dict with keys: model, evaluator, final_metrics, total_rows, elapsed
    """
    csv_path = Path(csv_path)

    if learner is None:
        learner = ScaleInvariantLearner(bits, L=L, initial_learning_rate=learning_rate)
        learner.set_loss(get_loss(loss))
        learner.set_clip_gradient(clip_gradient)
    elif learner.get_loss() is None:
        learner.set_loss(get_loss(loss))

    signed = learner.get_loss().name in ("logistic", "hinge")
    hasher = FeatureHasher(learner.bits, add_bias=add_bias)
    loader = StreamLoader(csv_path, hasher, signed_labels=signed)
    total_rows = loader.count_rows()
    evaluator  = SlidingWindowEvaluator(window_size=window_size)
    loss_fn    = learner.get_loss()

    logger.info("streaming %s (%d rows) into %r", csv_path, total_rows, learner)

    start_time = time.time()
    for step, sample in enumerate(loader.stream(), start=1):
        # 1. update returns the prediction made before learning (progressive)
        pred = learner.update(sample)

        # 2. evaluate
        evaluator.record(pred, sample.label, loss_fn.loss_value(pred, sample.label))

        # 3. dashboard at the requested cadence
        if not quiet and (step % print_every == 0 or step == total_rows):
            dashboard = _render_dashboard(
                step, total_rows, evaluator.get_metrics(),
                evaluator.cumulative_loss, evaluator.cumulative_rmse,
                len(learner.get_weights()),
                time.time() - start_time,
            )
            print("\033[2J\033[H", end="")
            print(dashboard, flush=True)

    elapsed = time.time() - start_time

    return dict(
        model=learner,
        evaluator=evaluator,
        final_metrics=evaluator.get_metrics(),
        total_rows=total_rows,
        elapsed=elapsed,
    )


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Live streaming demo for the scale-invariant online learner."
    )
    parser.add_argument(
        "--csv", type=str, default=None,
        help="Path to CSV file.  If omitted, generates data/samples/rescaled.csv automatically."
    )
    parser.add_argument("--bits", type=int, default=18, help="Hash space is 2**bits (default: 18).")
    parser.add_argument("--L", type=float, default=1.0, help="Clip bound L (default: 1.0).")
    parser.add_argument(
        "--learning-rate", type=float, default=1.0,
        help="Initial per-coordinate learning rate (default: 1.0)."
    )
    parser.add_argument(
        "--loss", type=str, default="logistic", choices=available_losses(),
        help="Loss function (default: logistic)."
    )
    parser.add_argument("--no-clip", action="store_true", help="Disable gradient clipping.")
    parser.add_argument("--no-bias", action="store_true", help="Do not add a constant feature.")
    parser.add_argument("--window", type=int, default=500, help="Sliding-window size (default: 500).")
    parser.add_argument(
        "--print-every", type=int, default=100,
        help="Refresh the dashboard every N rows (default: 100)."
    )
    parser.add_argument("--save-state", type=str, default=None, help="Write learner state JSON here.")
    parser.add_argument("--load-state", type=str, default=None, help="Resume from a learner state JSON.")
    parser.add_argument(
        "--log-level", type=str, default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)."
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ── resolve CSV path; generate the default if nothing was supplied ────
    if args.csv is None:
        csv_path = PROJECT_ROOT / "data" / "samples" / "rescaled.csv"
        if not csv_path.exists():
            print(f"  generating {csv_path} …")
            generate(csv_path, n_samples=5000, n_features=5, feature_scales=[1e-3, 1e-1, 1.0, 1e1, 1e3])
            print(f"  done.\n")
    else:
        csv_path = Path(args.csv)
        if not csv_path.exists():
            print(f"  ERROR: file not found: {csv_path}", file=sys.stderr)
            return 1

    learner = None
    if args.load_state is not None:
        try:
            learner = load_state(args.load_state)
        except (FileNotFoundError, ValueError, IndexError) as exc:
            print(f"  ERROR: cannot load state {args.load_state}: {exc}", file=sys.stderr)
            return 1

    result = run_stream(
        csv_path=csv_path,
        bits=args.bits,
        L=args.L,
        learning_rate=args.learning_rate,
        loss=args.loss,
        clip_gradient=not args.no_clip,
        add_bias=not args.no_bias,
        window_size=args.window,
        print_every=args.print_every,
        learner=learner,
    )

    if args.save_state is not None:
        path = save_state(result["model"], args.save_state)
        print(f"  state saved → {path}")

    m = result["final_metrics"]
    print(f"  ── DONE ──  {result['total_rows']} rows in {result['elapsed']:.2f}s")
    print(f"  final window metrics:  acc={_fmt(m.accuracy)}  auc={_fmt(m.auc)}  "
          f"loss={m.mean_loss:.4f}")
    print(f"  progressive loss:      {result['evaluator'].cumulative_loss:.4f}")
    print(f"  progressive rmse:      {result['evaluator'].cumulative_rmse:.4f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
