"""Exploratory plots of run-level protein abundances.

Reads the processed data cache written by preprocess.py and draws:
  1. one box per run of log2 abundances, coloured by condition
  2. histograms of log2 and linear abundances
  3. run-level profiles of selected proteins

Outputs (when --save-results):
  results/<results-subdir>/boxplot_runs.png
  results/<results-subdir>/hist_log2.png
  results/<results-subdir>/hist_linear.png
  results/<results-subdir>/profile_<protein>.png
"""

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parent.parent))

import argparse
import re
import time

import matplotlib

from protviz.core.cache_utils import load_cache
from protviz.core.data_utils import run_level_table
from protviz.core.log_utils import setup_logging

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
N_PROFILES = 3


def main() -> None:
    start = time.time()

    parser = argparse.ArgumentParser(
        description="Exploratory plots of run-level protein abundances."
    )
    parser.add_argument(
        "--cache-path",
        type=Path,
        default=Path("data/processed/processed_data.joblib"),
        help="Processed data cache from preprocess.py (default: data/processed/processed_data.joblib).",
    )
    parser.add_argument(
        "--proteins",
        nargs="*",
        default=None,
        help=f"Proteins to draw profiles for (default: the first {N_PROFILES}).",
    )
    parser.add_argument(
        "--results-subdir",
        type=str,
        default="explore",
        help="Subdirectory under results/ for output files (default: explore).",
    )
    parser.add_argument(
        "--save-results",
        action="store_true",
        help="Save figures and log to file; otherwise log to terminal and show plots.",
    )
    parser.add_argument(
        "--log-subdir",
        type=str,
        default="explore",
        help="Subdirectory under logs/ for log files (default: explore).",
    )
    args = parser.parse_args()

    if args.save_results:
        matplotlib.use("Agg")

    import matplotlib.pyplot as plt
    from protviz.core.plot_utils import plot_box, plot_histogram, plot_profile, save_or_show

    logger = setup_logging(args.save_results, args.log_subdir, "explore")
    logger.info("Starting explore.py")

    processed = load_cache(args.cache_path, "processed_data")
    if processed is None:
        raise FileNotFoundError(
            f"No usable processed data at {args.cache_path}; run scripts/preprocess.py first."
        )
    table = run_level_table(processed)

    results_dir = Path("results") / args.results_subdir
    if args.save_results:
        results_dir.mkdir(parents=True, exist_ok=True)
    out = (lambda name: results_dir / name) if args.save_results else (lambda name: None)

    # Step 1: per-run distributions
    ax = plot_box(table, by="run", color_by="condition")
    ax.set_title("Run-level log2 abundance per run")
    save_or_show(ax.get_figure(), out("boxplot_runs.png"))

    # Step 2: histograms
    ax = plot_histogram(table["log2_intensity"], xlabel="log2 abundance",
                        title="Distribution of log2 abundance")
    save_or_show(ax.get_figure(), out("hist_log2.png"))

    ax = plot_histogram(table["intensity"], xlabel="abundance",
                        title="Distribution of linear abundance")
    save_or_show(ax.get_figure(), out("hist_linear.png"))

    # Step 3: profiles
    proteins = args.proteins or sorted(table["protein"].unique())[:N_PROFILES]
    for protein in proteins:
        ax = plot_profile(table, protein)
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", str(protein))
        save_or_show(ax.get_figure(), out(f"profile_{safe}.png"))

    plt.close("all")
    logger.info("Finished in %.2f s", time.time() - start)


if __name__ == "__main__":
    main()
