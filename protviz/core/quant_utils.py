"""
quant_utils.py
--------------
Feature-to-protein quantification: log transform, run normalization,
censored-value imputation and run-level summarization.

The steps mirror a standard label-free DDA/SRM processing workflow:

1. join the raw measurements with the run annotation
2. treat intensities at or below a detection cutoff as censored
3. log2-transform and equalize run medians
4. impute censored values per feature with the feature minimum
5. summarize each protein per run with Tukey's median polish
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NamedTuple

import numpy as np
import pandas as pd

from .cache_utils import cached

logger = logging.getLogger(__name__)

NORMALIZATION_METHODS = ("equalize_medians", "none")
FEATURE_KEYS = ["peptide", "precursor_charge", "fragment_ion", "product_charge", "isotope_label"]
ENDOGENOUS_LABELS = ("light", "l")


class ProcessedData(NamedTuple):
    """Container returned by :func:`process_data`."""
    feature_level: pd.DataFrame
    run_level: pd.DataFrame


class MedianPolishResult(NamedTuple):
    """Additive fit ``y_ij = overall + row_i + col_j + residual_ij``."""
    overall: float
    row_effects: pd.Series
    col_effects: pd.Series
    residuals: pd.DataFrame
    n_iterations: int
    converged: bool


# ---------------------------------------------------------------------------
# Summarization
# ---------------------------------------------------------------------------

def tukey_median_polish(
    matrix: pd.DataFrame,
    max_iter: int = 10,
    tol: float = 1e-4,
) -> MedianPolishResult:
    """Apply Tukey's median polish to a feature x run matrix of log2 values.

    Missing cells are ignored by the medians. The column effects plus the
    overall effect are the run-level abundance estimates.
    """
    residuals = matrix.to_numpy(dtype=float, copy=True)
    overall = 0.0
    row_effects = np.zeros(matrix.shape[0])
    col_effects = np.zeros(matrix.shape[1])
    converged = False

    for iteration in range(max_iter):
        old = residuals.copy()

        row_medians = np.nan_to_num(np.nanmedian(residuals, axis=1))
        residuals = residuals - row_medians[:, np.newaxis]
        row_effects += row_medians
        col_shift = np.nanmedian(col_effects)
        col_effects -= col_shift
        overall += col_shift

        col_medians = np.nan_to_num(np.nanmedian(residuals, axis=0))
        residuals = residuals - col_medians[np.newaxis, :]
        col_effects += col_medians
        row_shift = np.nanmedian(row_effects)
        row_effects -= row_shift
        overall += row_shift

        change = np.abs(residuals - old)
        if not np.isfinite(change).any() or np.nanmax(change) < tol:
            converged = True
            break

    if not converged:
        logger.debug("Median polish did not converge after %d iterations", max_iter)

    return MedianPolishResult(
        overall=float(overall),
        row_effects=pd.Series(row_effects, index=matrix.index, name="feature_effect"),
        col_effects=pd.Series(col_effects, index=matrix.columns, name="run_effect"),
        residuals=pd.DataFrame(residuals, index=matrix.index, columns=matrix.columns),
        n_iterations=iteration + 1,
        converged=converged,
    )


def summarize_protein(feature_matrix: pd.DataFrame) -> pd.Series:
    """Run-level log2 abundance for one protein (feature x run matrix).

    Runs with no observed feature are returned as NaN.
    """
    fit = tukey_median_polish(feature_matrix)
    estimate = fit.overall + fit.col_effects
    observed = feature_matrix.notna().any(axis=0)
    return estimate.where(observed)


# ---------------------------------------------------------------------------
# Preprocessing steps
# ---------------------------------------------------------------------------

def merge_annotation(raw: pd.DataFrame, annotation: pd.DataFrame) -> pd.DataFrame:
    """Attach condition / subject metadata to every raw measurement.

    Raises
    ------
    ValueError
        If a run is annotated more than once, or if a measured run has no
        annotation row.
    """
    dup = annotation["run"][annotation["run"].duplicated()].unique()
    if len(dup):
        raise ValueError(f"Runs annotated more than once: {sorted(dup)}")

    missing = sorted(set(raw["run"]) - set(annotation["run"]))
    if missing:
        raise ValueError(f"Runs missing from the annotation table: {missing}")

    unused = sorted(set(annotation["run"]) - set(raw["run"]))
    if unused:
        logger.warning("%d annotated run(s) have no measurements: %s", len(unused), unused)

    meta_cols = [c for c in ("run", "condition", "subject", "tech_rep") if c in annotation.columns]
    raw_cols = [c for c in raw.columns if c not in meta_cols or c == "run"]
    return raw[raw_cols].merge(annotation[meta_cols], on="run", how="left", validate="many_to_one")


def add_feature_id(df: pd.DataFrame) -> pd.DataFrame:
    """Add a ``feature`` column joining peptide, charges, fragment ion and isotope label."""
    keys = [k for k in FEATURE_KEYS if k in df.columns]
    df = df.copy()
    df["feature"] = df[keys].astype(str).agg("_".join, axis=1)
    return df


def select_endogenous(df: pd.DataFrame) -> pd.DataFrame:
    """Keep only endogenous (light) measurements.

    Heavy-labelled reference standards share the peptide of the endogenous
    feature but do not measure the sample's abundance, so they are removed
    before summarization. Tables without an ``isotope_label`` column are
    returned unchanged.

    Raises
    ------
    ValueError
        If the table has isotope labels but none of them is endogenous.
    """
    if "isotope_label" not in df.columns:
        return df
    labels = df["isotope_label"].astype(str).str.strip().str.lower()
    endogenous = labels.isin(ENDOGENOUS_LABELS)
    if not endogenous.any():
        raise ValueError(
            f"No endogenous measurements; isotope labels found: "
            f"{sorted(df['isotope_label'].astype(str).unique())}"
        )
    n_dropped = int((~endogenous).sum())
    if n_dropped:
        logger.info("Removed %d labelled reference measurement(s)", n_dropped)
    return df[endogenous].copy()


def drop_single_feature_proteins(df: pd.DataFrame) -> pd.DataFrame:
    """Remove proteins quantified by a single feature."""
    n_features = df.groupby("protein")["feature"].nunique()
    single = n_features.index[n_features < 2]
    if len(single):
        logger.info("Removing %d single-feature protein(s)", len(single))
    return df[~df["protein"].isin(single)].copy()


def normalize(df: pd.DataFrame, method: str | None = "equalize_medians") -> pd.DataFrame:
    """Normalize ``log2_intensity`` across runs.

    ``"equalize_medians"`` shifts every run so that its median equals the
    median of all run medians. ``None`` or ``"none"`` returns the input.
    """
    if method is None or method == "none":
        return df
    if method != "equalize_medians":
        raise ValueError(
            f"Unknown normalization '{method}'. Choose from {NORMALIZATION_METHODS}."
        )

    df = df.copy()
    run_medians = df.groupby("run")["log2_intensity"].median()
    target = run_medians.median()
    shift = (target - run_medians).rename("shift")
    df["log2_intensity"] = df["log2_intensity"] + df["run"].map(shift)
    logger.info(
        "Equalized run medians to %.3f (largest shift %.3f)",
        target, float(shift.abs().max()) if len(shift) else 0.0,
    )
    return df


def impute_censored(df: pd.DataFrame) -> pd.DataFrame:
    """Replace censored values with the minimum observed value of the feature.

    Adds a boolean ``imputed`` column. Features without a single observed
    value cannot be imputed and stay missing.
    """
    df = df.copy()
    censored = df["log2_intensity"].isna()
    feature_min = df.groupby(["protein", "feature"])["log2_intensity"].transform("min")
    df["log2_intensity"] = df["log2_intensity"].fillna(feature_min)
    df["imputed"] = censored & df["log2_intensity"].notna()

    n_imputed = int(df["imputed"].sum())
    n_left = int(df["log2_intensity"].isna().sum())
    logger.info("Imputed %d censored value(s) with feature minimum", n_imputed)
    if n_left:
        logger.warning("%d value(s) remain missing (features never observed)", n_left)
    return df


def summarize_runs(feature_level: pd.DataFrame) -> pd.DataFrame:
    """Summarize the feature-level table to one row per (protein, run)."""
    meta_cols = [c for c in ("condition", "subject", "tech_rep") if c in feature_level.columns]
    run_meta = feature_level.drop_duplicates("run").set_index("run")[meta_cols]

    rows = []
    for protein, sub in feature_level.groupby("protein", sort=True):
        mat = sub.pivot_table(
            index="feature", columns="run", values="log2_intensity", aggfunc="max"
        )
        if mat.empty:
            continue
        estimate = summarize_protein(mat).dropna()
        counts = sub.dropna(subset=["log2_intensity"]).groupby("run").agg(
            n_features=("feature", "nunique"),
            n_imputed=("imputed", "sum"),
        )
        for run, value in estimate.items():
            rows.append({
                "protein": protein,
                "run": run,
                "log2_intensity": float(value),
                "n_features": int(counts.at[run, "n_features"]),
                "n_imputed": int(counts.at[run, "n_imputed"]),
            })

    run_level = pd.DataFrame(
        rows, columns=["protein", "run", "log2_intensity", "n_features", "n_imputed"]
    )
    run_level = run_level.merge(run_meta, left_on="run", right_index=True, how="left")
    logger.info(
        "Summarized %d proteins into %d run-level rows",
        run_level["protein"].nunique(), len(run_level),
    )
    return run_level


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def process_data(
    raw: pd.DataFrame,
    annotation: pd.DataFrame,
    remove_single_feature_proteins: bool = False,
    normalization: str | None = "equalize_medians",
    censored_cutoff: float = 1.0,
) -> ProcessedData:
    """Normalize, impute and summarize raw feature intensities per run.

    Parameters
    ----------
    raw : pd.DataFrame
        Output of :func:`protviz.core.io_utils.load_raw_table`.
    annotation : pd.DataFrame
        Output of :func:`protviz.core.io_utils.load_annotation`.
    remove_single_feature_proteins : bool, optional
        Drop proteins with only one feature before summarization.
    normalization : str or None, optional
        ``"equalize_medians"`` (default) or ``"none"``.
    censored_cutoff : float, optional
        Intensities at or below this value are treated as censored.

    Returns
    -------
    ProcessedData
        ``feature_level``: normalized, imputed log2 values per feature and
        run. ``run_level``: one row per (protein, run).
    """
    logger.info(
        "Processing %d measurements (normalization=%s, remove_single_feature=%s)",
        len(raw), normalization, remove_single_feature_proteins,
    )
    df = select_endogenous(merge_annotation(raw, annotation))
    df = add_feature_id(df)

    intensity = df["intensity"].astype(float)
    is_censored = intensity.isna() | (intensity <= censored_cutoff)
    logger.info("%d of %d measurement(s) censored", int(is_censored.sum()), len(df))
    df["log2_intensity"] = np.log2(intensity.where(~is_censored))

    if remove_single_feature_proteins:
        df = drop_single_feature_proteins(df)

    df = normalize(df, normalization)
    df = impute_censored(df)
    run_level = summarize_runs(df)

    return ProcessedData(feature_level=df.reset_index(drop=True), run_level=run_level)


def process_data_cached(
    raw: pd.DataFrame,
    annotation: pd.DataFrame,
    cache_path: str | Path,
    recompute: bool = False,
    remove_single_feature_proteins: bool = False,
    normalization: str | None = "equalize_medians",
    censored_cutoff: float = 1.0,
) -> ProcessedData:
    """:func:`process_data` backed by a flat-file cache at *cache_path*.

    A cache written with other processing options is recomputed.
    """
    params = {
        "remove_single_feature_proteins": bool(remove_single_feature_proteins),
        "normalization": normalization,
        "censored_cutoff": float(censored_cutoff),
    }
    result = cached(
        cache_path,
        "processed_data",
        lambda: process_data(raw, annotation, **params),
        recompute=recompute,
        params=params,
    )
    return ProcessedData(*result)
