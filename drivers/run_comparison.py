#!/usr/bin/env python3
"""
run_comparison.py
─────────────────
Driver script that runs the scale-invariant learner, sklearn SGD and a
batch baseline on the same dataset, plots the results, and optionally saves
the figure.

Usage
─────
    python -m drivers.run_comparison --csv data/samples/rescaled.csv
    python -m drivers.run_comparison --csv data/samples/regression.csv --loss squared
    python -m drivers.run_comparison --csv data/samples/drifted.csv \\
        --record-every 10 --save-plots --output-dir plots/

What the plots show
───────────────────
   - progressive mean loss over the sliding window, ScInOL vs SGD
   - window RMSE
   - window accuracy and AUC (classification losses only), with the batch
     test-set value as a dashed reference line
   - a summary table of final values
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.gridspec as gridspec
from matplotlib.ticker import MaxNLocator

SCRIPT_DIR   = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.losses               import available_losses
from evaluation.online_vs_sgd  import SGD_LOSSES, compare


SCINOL_COLOR = "#2E86AB"
SGD_COLOR    = "#E63946"
BATCH_COLOR  = "#A23B72"


# ═════════════════════════════════════════════════════════════════════════
# PLOTTING
# ═════════════════════════════════════════════════════════════════════════

def _as_float(values) -> np.ndarray:
    """None → NaN so matplotlib leaves gaps."""
    return np.array([np.nan if v is None else v for v in values], dtype=np.float64)


def _panel(ax, steps, ours, theirs, title, ylabel, baseline=None, ylim=None):
    ax.plot(steps, ours, label="ScInOL", color=SCINOL_COLOR, linewidth=1.5)
    ax.plot(steps, theirs, label="SGD (partial_fit)", color=SGD_COLOR, linewidth=1.2, alpha=0.8)
    if baseline is not None:
        ax.axhline(baseline, color=BATCH_COLOR, linestyle="--", linewidth=2, label="Batch (test set)")
    ax.set_xlabel("Sample", fontsize=10)
    ax.set_ylabel(ylabel, fontsize=10)
    ax.set_title(title, fontsize=11, fontweight="bold")
    ax.legend(loc="best", fontsize=9)
    ax.grid(alpha=0.3, linestyle=":")
    if ylim is not None:
        ax.set_ylim(*ylim)
    ax.xaxis.set_major_locator(MaxNLocator(integer=True, nbins=6))


def _final(values) -> float | None:
    finite = [v for v in values if v is not None and np.isfinite(v)]
    return finite[-1] if finite else None


def summary_rows(results: Dict[str, Any]) -> list:
    """[metric, ScInOL, SGD, Batch] rows of formatted final values."""
    ours, theirs = results["scinol"]["histories"], results["sgd"]["histories"]
    batch = results["batch"] or {}

    def fmt(v):
        return f"{v:.4f}" if v is not None else "N/A"

    rows = [["Metric", "ScInOL", "SGD", "Batch"]]
    rows.append(["Window loss", fmt(_final(ours["mean_loss"])), fmt(_final(theirs["mean_loss"])), "—"])
    rows.append(["Window RMSE", fmt(_final(ours["rmse"])), fmt(_final(theirs["rmse"])), fmt(batch.get("rmse"))])
    rows.append(["Progressive loss",
                 fmt(results["scinol"]["evaluator"].cumulative_loss),
                 fmt(results["sgd"]["evaluator"].cumulative_loss), "—"])
    if _final(ours["accuracy"]) is not None:
        rows.append(["Accuracy", fmt(_final(ours["accuracy"])), fmt(_final(theirs["accuracy"])),
                     fmt(batch.get("accuracy"))])
        rows.append(["ROC-AUC", fmt(_final(ours["auc"])), fmt(_final(theirs["auc"])),
                     fmt(batch.get("auc"))])
    return rows


def plot_comparison(results: Dict[str, Any], save_path: Path | None = None) -> None:
    """Draw the multi-panel comparison figure; save it or show it."""
    ours, theirs = results["scinol"]["histories"], results["sgd"]["histories"]
    batch    = results["batch"] or {}
    csv_name = Path(results["csv_path"]).name
    steps    = np.array(ours["step"])

    fig = plt.figure(figsize=(16, 10))
    fig.suptitle(
        f"ScInOL vs SGD ({results['loss']} loss) — {csv_name}",
        fontsize=16, fontweight="bold", y=0.995,
    )
    gs = gridspec.GridSpec(2, 3, figure=fig, hspace=0.35, wspace=0.25,
                           top=0.93, bottom=0.06, left=0.06, right=0.98)

    _panel(fig.add_subplot(gs[0, 0]), steps, _as_float(ours["mean_loss"]), _as_float(theirs["mean_loss"]),
           "Window Mean Loss", "Loss")
    ax_rmse = fig.add_subplot(gs[0, 1])
    _panel(ax_rmse, steps, _as_float(ours["rmse"]), _as_float(theirs["rmse"]),
           "Window RMSE", "RMSE", baseline=batch.get("rmse"))
    ax_rmse.set_yscale("log")

    classification = SGD_LOSSES.get(results["loss"], ("regression",))[0] == "classification"
    if classification:
        _panel(fig.add_subplot(gs[0, 2]), steps, _as_float(ours["accuracy"]), _as_float(theirs["accuracy"]),
               "Window Accuracy", "Accuracy", baseline=batch.get("accuracy"), ylim=(0, 1.05))
        _panel(fig.add_subplot(gs[1, 0]), steps, _as_float(ours["auc"]), _as_float(theirs["auc"]),
               "Window ROC-AUC", "ROC-AUC", baseline=batch.get("auc"), ylim=(0, 1.05))

    # ── weight magnitudes, log scale: scale invariance in action ─────────
    ax_w = fig.add_subplot(gs[1, 1])
    weights = results["scinol"]["model"].get_weights()
    if len(weights):
        ax_w.bar(range(len(weights)), np.abs(weights.values) + 1e-300, color=SCINOL_COLOR)
        ax_w.set_yscale("log")
    ax_w.set_title("|ScInOL weights| (hashed coords)", fontsize=11, fontweight="bold")
    ax_w.set_xlabel("Non-zero coordinate", fontsize=10)
    ax_w.grid(alpha=0.3, linestyle=":")

    # ── summary table ────────────────────────────────────────────────────
    ax_t = fig.add_subplot(gs[1, 2])
    ax_t.axis("off")
    rows  = summary_rows(results)
    table = ax_t.table(cellText=rows, cellLoc="center", loc="center", colWidths=[0.34, 0.22, 0.22, 0.22])
    table.auto_set_font_size(False)
    table.set_fontsize(10)
    table.scale(1, 2)
    for i in range(4):
        cell = table[(0, i)]
        cell.set_facecolor("#4472C4")
        cell.set_text_props(weight="bold", color="white")
    ax_t.set_title("Final Values", fontsize=11, fontweight="bold", pad=20)

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"\n✓ Plot saved to: {save_path}")
    else:
        plt.show()

    plt.close(fig)


def print_summary_table(results: Dict[str, Any]) -> None:
    rows = summary_rows(results)
    print("\n" + "=" * 70)
    print("COMPARISON SUMMARY")
    print("=" * 70)
    print(f"Dataset: {results['csv_path']}")
    print(f"Loss:    {results['loss']}")
    print(f"Samples: {results['scinol']['evaluator'].total_seen}")
    if results["sgd"]["diverged_at"] is not None:
        print(f"SGD diverged at step {results['sgd']['diverged_at']}")
    print("-" * 70)
    for row in rows:
        print(f"{row[0]:<18} {row[1]:<16} {row[2]:<16} {row[3]:<16}")
    print("=" * 70 + "\n")


# ═════════════════════════════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═════════════════════════════════════════════════════════════════════════

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Run ScInOL vs sklearn SGD (and a batch baseline) and plot results.",
    )
    parser.add_argument("--csv", type=str, required=True,
                        help="Path to the input CSV file (generated by generate_sample_data.py)")
    parser.add_argument("--loss", type=str, default="logistic", choices=available_losses(),
                        help="Loss for both online learners (default: logistic)")
    parser.add_argument("--bits", type=int, default=18, help="Hash space is 2**bits (default: 18)")
    parser.add_argument("--L", type=float, default=1.0, help="Clip bound L (default: 1.0)")
    parser.add_argument("--learning-rate", type=float, default=1.0,
                        help="Initial per-coordinate learning rate (default: 1.0)")
    parser.add_argument("--window-size", type=int, default=500,
                        help="Sliding window size for online metrics (default: 500)")
    parser.add_argument("--record-every", type=int, default=1,
                        help="Record metrics every N steps (default: 1)")
    parser.add_argument("--test-size", type=float, default=0.2,
                        help="Held-out fraction for the batch baseline (default: 0.2)")
    parser.add_argument("--no-batch", action="store_true", help="Skip the batch baseline")
    parser.add_argument("--save-plots", action="store_true",
                        help="Save plots to file instead of displaying interactively")
    parser.add_argument("--output-dir", type=str, default="plots",
                        help="Directory to save plots (default: plots/)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    csv_path = Path(args.csv)
    if not csv_path.exists():
        print(f"ERROR: CSV file not found: {csv_path}", file=sys.stderr)
        return 1

    print("\nRunning ScInOL, SGD and batch baseline...")
    results = compare(
        csv_path=csv_path,
        loss=args.loss,
        bits=args.bits,
        L=args.L,
        learning_rate=args.learning_rate,
        window_size=args.window_size,
        test_size=args.test_size,
        seed=args.seed,
        record_every=args.record_every,
        with_batch=not args.no_batch,
    )
    print("✓ Comparison complete!")

    print_summary_table(results)

    if args.save_plots:
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        save_path = output_dir / f"{csv_path.stem}_{args.loss}_L{args.L}.png"
        plot_comparison(results, save_path=save_path)
    else:
        print("Generating plots (close window to exit)...")
        plot_comparison(results, save_path=None)

    return 0


if __name__ == "__main__":
    sys.exit(main())
