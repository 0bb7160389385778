"""Group comparison pipeline for run-level protein abundances.

Reads the processed data cache written by preprocess.py and performs:
  1. Contrast construction (all condition pairs, or --contrast NUM:DEN)
  2. Per-protein linear model and contrast t-tests (cached)
  3. Benjamini-Hochberg correction within each contrast
  4. Volcano plot per contrast, bar chart of significant counts
  5. Venn diagram (2-3 contrasts) and UpSet plot of significant sets

Outputs (when --save-results):
  results/<results-subdir>/group_comparison.csv
  results/<results-subdir>/volcano_<contrast>.png
  results/<results-subdir>/significant_counts.png
  results/<results-subdir>/venn.png
  results/<results-subdir>/upset.png
"""

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parent.parent))

import argparse
import re
import time

import matplotlib
import pandas as pd

from protviz.core.cache_utils import load_cache
from protviz.core.data_utils import run_level_table
from protviz.core.log_utils import setup_logging
from protviz.core.stats_utils import (
    count_significant,
    group_comparison_cached,
    make_contrast,
    pairwise_contrasts,
    significant_proteins,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
ALPHA = 0.05
FC_CUTOFF = 0.0
N_LABELS = 20


def build_contrasts(conditions: list[str], specs: list[str] | None) -> pd.DataFrame:
    """Contrast matrix from ``NUM:DEN`` specs, or all pairs when *specs* is empty."""
    if not specs:
        return pairwise_contrasts(conditions)
    rows = []
    for spec in specs:
        num, sep, den = spec.partition(":")
        if not sep:
            raise ValueError(f"Contrast '{spec}' is not of the form NUM:DEN")
        rows.append(make_contrast(conditions, num, den))
    return pd.concat(rows)


def main() -> None:
    start = time.time()

    parser = argparse.ArgumentParser(
        description="Compare conditions protein by protein and plot the results."
    )
    parser.add_argument(
        "--cache-path",
        type=Path,
        default=Path("data/processed/processed_data.joblib"),
        help="Processed data cache from preprocess.py (default: data/processed/processed_data.joblib).",
    )
    parser.add_argument(
        "--results-cache-path",
        type=Path,
        default=Path("data/processed/group_comparison.joblib"),
        help="Cache file for the test results (default: data/processed/group_comparison.joblib).",
    )
    parser.add_argument(
        "--recompute",
        action="store_true",
        help="Ignore an existing results cache and recompute the tests.",
    )
    parser.add_argument(
        "--contrast",
        action="append",
        default=None,
        help="Contrast as NUM:DEN (repeatable). Default: every pair of conditions.",
    )
    parser.add_argument(
        "--alpha",
        type=float,
        default=ALPHA,
        help=f"Significance threshold on adjusted p-values (default: {ALPHA}).",
    )
    parser.add_argument(
        "--fc-cutoff",
        type=float,
        default=FC_CUTOFF,
        help=f"|log2 fold change| cutoff for volcano colouring (default: {FC_CUTOFF}).",
    )
    parser.add_argument(
        "--results-subdir",
        type=str,
        default="group_comparison",
        help="Subdirectory under results/ for output files (default: group_comparison).",
    )
    parser.add_argument(
        "--save-results",
        action="store_true",
        help="Save outputs to disk and log to file; otherwise log to terminal and show plots.",
    )
    parser.add_argument(
        "--log-subdir",
        type=str,
        default="group_comparison",
        help="Subdirectory under logs/ for log files (default: group_comparison).",
    )
    args = parser.parse_args()

    if args.save_results:
        matplotlib.use("Agg")

    from protviz.core.plot_utils import (
        plot_bar,
        plot_upset,
        plot_venn,
        plot_volcano,
        save_or_show,
    )

    logger = setup_logging(args.save_results, args.log_subdir, "group_comparison")
    logger.info("Starting group_comparison.py")
    logger.info(
        "Args: cache_path=%s  results_cache_path=%s  contrasts=%s  alpha=%s  recompute=%s",
        args.cache_path, args.results_cache_path, args.contrast, args.alpha, args.recompute,
    )

    # Step 1: Load
    processed = load_cache(args.cache_path, "processed_data")
    if processed is None:
        raise FileNotFoundError(
            f"No usable processed data at {args.cache_path}; run scripts/preprocess.py first."
        )
    table = run_level_table(processed)

    # Step 2: Contrasts
    conditions = sorted(table["condition"].astype(str).unique())
    contrasts = build_contrasts(conditions, args.contrast)
    logger.info("Contrast matrix:\n%s", contrasts.to_string())

    # Step 3: Tests (or reload)
    results = group_comparison_cached(
        table, contrasts, cache_path=args.results_cache_path, recompute=args.recompute
    )
    counts = count_significant(results, alpha=args.alpha)
    logger.info("Significant proteins per contrast:\n%s", counts.to_string())

    results_dir = Path("results") / args.results_subdir
    if args.save_results:
        results_dir.mkdir(parents=True, exist_ok=True)
    out = (lambda name: results_dir / name) if args.save_results else (lambda name: None)

    # Step 4: Volcano plots and counts
    for label in contrasts.index:
        tested = results[(results["label"] == label) & results["adj_pvalue"].notna()]
        if tested.empty:
            logger.warning("Skipping volcano for '%s': no protein could be tested", label)
            continue
        ax = plot_volcano(results, label, alpha=args.alpha, fc_cutoff=args.fc_cutoff,
                          n_labels=N_LABELS)
        safe = re.sub(r"[^A-Za-z0-9]+", "_", label).strip("_")
        save_or_show(ax.get_figure(), out(f"volcano_{safe}.png"))

    ax = plot_bar(counts, title=f"Significant proteins (adj. p < {args.alpha})")
    save_or_show(ax.get_figure(), out("significant_counts.png"))

    # Step 5: Overlap of significant sets
    sets = significant_proteins(results, alpha=args.alpha)
    if 2 <= len(sets) <= 3:
        ax = plot_venn(sets, title="Overlap of significant proteins")
        save_or_show(ax.get_figure(), out("venn.png"))
    if len(sets) >= 2 and any(sets.values()):
        fig = plot_upset(sets, title="Intersections of significant proteins")
        save_or_show(fig, out("upset.png"))
    else:
        logger.info("Skipping UpSet plot: fewer than two contrasts or no significant proteins")

    if args.save_results:
        results_out = results_dir / "group_comparison.csv"
        results.to_csv(results_out, index=False)
        logger.info("Saved group comparison results to: %s", results_out)

    logger.info("Finished in %.2f s", time.time() - start)


if __name__ == "__main__":
    main()
