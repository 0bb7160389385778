"""Quantification preprocessing script.

Loads the raw feature-level measurements and the run annotation, then:
  1. log2-transforms intensities (values <= --censored-cutoff are censored)
  2. equalizes run medians
  3. imputes censored values with the feature minimum
  4. summarizes every protein per run with Tukey's median polish

The processed object is cached at --cache-path. By default an existing,
matching cache is reloaded; pass --recompute to rebuild it.

Outputs:
  <cache-path>                                (always)
  data/processed/run_level.csv                (when --save-results)
"""

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parent.parent))

import argparse
import time

from protviz.core.data_utils import run_level_table
from protviz.core.io_utils import load_annotation, load_raw_table
from protviz.core.log_utils import setup_logging
from protviz.core.quant_utils import NORMALIZATION_METHODS, process_data_cached


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    start = time.time()

    parser = argparse.ArgumentParser(
        description="Normalize, impute and summarize raw proteomics measurements per run."
    )
    parser.add_argument(
        "--raw-path",
        type=Path,
        default=Path("data/raw/raw_measurements.csv"),
        help="Raw feature-level measurement table (default: data/raw/raw_measurements.csv).",
    )
    parser.add_argument(
        "--annotation-path",
        type=Path,
        default=Path("data/raw/annotation.csv"),
        help="Run annotation table (default: data/raw/annotation.csv).",
    )
    parser.add_argument(
        "--cache-path",
        type=Path,
        default=Path("data/processed/processed_data.joblib"),
        help="Cache file for the processed data (default: data/processed/processed_data.joblib).",
    )
    parser.add_argument(
        "--processed-dir",
        type=Path,
        default=Path("data/processed"),
        help="Directory for the run-level CSV (default: data/processed).",
    )
    parser.add_argument(
        "--recompute",
        action="store_true",
        help="Ignore an existing cache and recompute the processed data.",
    )
    parser.add_argument(
        "--remove-single-feature-proteins",
        action="store_true",
        help="Drop proteins quantified by a single feature.",
    )
    parser.add_argument(
        "--normalization",
        type=str,
        choices=list(NORMALIZATION_METHODS),
        default="equalize_medians",
        help="Run normalization (default: equalize_medians).",
    )
    parser.add_argument(
        "--censored-cutoff",
        type=float,
        default=1.0,
        help="Intensities at or below this value are censored (default: 1.0).",
    )
    parser.add_argument(
        "--save-results",
        action="store_true",
        help="Save the run-level table and log to file; otherwise log to terminal.",
    )
    parser.add_argument(
        "--log-subdir",
        type=str,
        default="preprocess",
        help="Subdirectory under logs/ for log files (default: preprocess).",
    )
    args = parser.parse_args()

    logger = setup_logging(args.save_results, args.log_subdir, "preprocess")

    logger.info("Starting preprocess.py")
    logger.info(
        "Args: raw_path=%s  annotation_path=%s  cache_path=%s  recompute=%s  "
        "normalization=%s  remove_single_feature_proteins=%s",
        args.raw_path, args.annotation_path, args.cache_path, args.recompute,
        args.normalization, args.remove_single_feature_proteins,
    )

    # Step 1: Load inputs
    raw = load_raw_table(args.raw_path)
    annotation = load_annotation(args.annotation_path)

    # Step 2: Process (or reload from cache)
    processed = process_data_cached(
        raw,
        annotation,
        cache_path=args.cache_path,
        recompute=args.recompute,
        remove_single_feature_proteins=args.remove_single_feature_proteins,
        normalization=args.normalization,
        censored_cutoff=args.censored_cutoff,
    )

    # Step 3: Tidy run-level table
    table = run_level_table(processed)
    logger.info(
        "Run-level table: %d rows, %d proteins, %d runs",
        len(table), table["protein"].nunique(), table["run"].nunique(),
    )
    logger.info("Head:\n%s", table.head(10).to_string(index=False))

    if args.save_results:
        args.processed_dir.mkdir(parents=True, exist_ok=True)
        out = args.processed_dir / "run_level.csv"
        table.to_csv(out, index=False)
        logger.info("Saved run-level table to: %s", out)

    logger.info("Finished in %.2f s", time.time() - start)


if __name__ == "__main__":
    main()
