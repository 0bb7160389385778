"""
data_utils.py
-------------
Reshaping and small derivations on quantification tables.

Two shapes are used throughout the project:
  - the tidy *run-level table*: one row per (protein, run) with the log2 and
    linear abundance plus the run's condition / subject / technical replicate
  - the wide *sample-by-protein matrix*: rows = samples (or runs),
    columns = proteins, as consumed by the clustering and PCA helpers.
"""

from __future__ import annotations

import logging
import re

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Trailing digit group of a run name, ignoring an optional file extension:
# "Sample_A_2.raw" -> "2", "JD_1217_03" -> "03".
TECH_REP_PATTERN = r"(\d+)(?:\.[A-Za-z0-9]+)?$"

RUN_LEVEL_COLUMNS = [
    "protein",
    "run",
    "log2_intensity",
    "intensity",
    "condition",
    "subject",
    "tech_rep",
]


# ---------------------------------------------------------------------------
# Run-level table
# ---------------------------------------------------------------------------

def derive_tech_replicate(
    runs: pd.Series,
    explicit: pd.Series | None = None,
    pattern: str = TECH_REP_PATTERN,
) -> pd.Series:
    """Return the technical-replicate index for each run.

    An explicit annotation column always wins. Runs without an explicit value
    fall back to parsing the run name with *pattern* (first capture group,
    converted to int). Runs that match neither are left as ``<NA>`` and
    reported in the log.

    Parameters
    ----------
    runs : pd.Series
        Run names.
    explicit : pd.Series or None, optional
        Annotated technical-replicate values aligned with *runs*.
    pattern : str, optional
        Regular expression with one capture group holding the replicate index.

    Returns
    -------
    pd.Series
        Nullable integer series (``Int64``) aligned with *runs*.
    """
    regex = re.compile(pattern)

    def _parse(name) -> float:
        m = regex.search(str(name))
        return float(m.group(1)) if m else np.nan

    parsed = runs.map(_parse)
    if explicit is not None:
        explicit_num = pd.to_numeric(explicit, errors="coerce")
        parsed = explicit_num.where(explicit_num.notna(), parsed)

    unparsed = runs[parsed.isna()].unique()
    if len(unparsed):
        logger.warning(
            "Could not derive a technical replicate for %d run(s): %s",
            len(unparsed), list(unparsed)[:5],
        )
    return parsed.astype("Int64")


def run_level_table(processed) -> pd.DataFrame:
    """Select and rename the run-level summary into a tidy plotting table.

    Parameters
    ----------
    processed : ProcessedData or pd.DataFrame
        Output of :func:`protviz.core.quant_utils.process_data`, or its
        ``run_level`` frame directly.

    Returns
    -------
    pd.DataFrame
        Columns ``protein, run, log2_intensity, intensity, condition,
        subject, tech_rep``; ``intensity`` is always ``2 ** log2_intensity``.
    """
    run_level = getattr(processed, "run_level", processed)
    table = run_level.copy()

    table["intensity"] = np.power(2.0, table["log2_intensity"].astype(float))
    explicit = table["tech_rep"] if "tech_rep" in table.columns else None
    table["tech_rep"] = derive_tech_replicate(table["run"], explicit=explicit)

    return table[RUN_LEVEL_COLUMNS].reset_index(drop=True)


def abundance_matrix(
    run_level: pd.DataFrame,
    index: str = "run",
    value: str = "log2_intensity",
) -> pd.DataFrame:
    """Pivot a run-level table into a ``index x protein`` matrix."""
    return run_level.pivot_table(index=index, columns="protein", values=value, aggfunc="mean")


# ---------------------------------------------------------------------------
# Sample-by-protein matrix helpers
# ---------------------------------------------------------------------------

def impute_column_median(matrix: pd.DataFrame) -> pd.DataFrame:
    """Fill missing entries with the column median.

    Columns without any observed value have no median and are dropped. The
    number of filled cells and dropped columns is logged.

    Returns
    -------
    pd.DataFrame
        Matrix without missing values.
    """
    mat = matrix.astype(float)
    empty = mat.columns[mat.isna().all()]
    if len(empty):
        logger.warning("Dropping %d protein(s) with no observed values", len(empty))
        mat = mat.drop(columns=empty)

    n_missing = int(mat.isna().sum().sum())
    mat = mat.fillna(mat.median())
    logger.info(
        "Median-imputed %d of %d cells (%.1f%%)",
        n_missing, mat.size, 100.0 * n_missing / max(mat.size, 1),
    )
    return mat


def diagnosis_labels(index: pd.Index, sep: str = "_") -> pd.Series:
    """Derive a group label from each row name: the prefix before the first *sep*.

    >>> diagnosis_labels(pd.Index(["CRC_01", "Healthy_02"])).tolist()
    ['CRC', 'Healthy']
    """
    names = pd.Index(index).astype(str)
    return pd.Series(names.str.split(sep, n=1).str[0], index=index, name="diagnosis")


def create_subsets(matrix: pd.DataFrame, labels: pd.Series) -> dict[str, pd.DataFrame]:
    """Split *matrix* into one frame per label value.

    Parameters
    ----------
    matrix : pd.DataFrame
        Sample-by-protein matrix.
    labels : pd.Series
        Group label per row of *matrix* (e.g. from :func:`diagnosis_labels`).

    Returns
    -------
    dict[str, pd.DataFrame]
        Copies of the rows belonging to each label, keyed by label.
    """
    labels = labels.reindex(matrix.index)
    return {lab: matrix[labels == lab].copy() for lab in sorted(labels.dropna().unique())}


def get_top_diff_features(
    df_a: pd.DataFrame,
    df_b: pd.DataFrame,
    k: int = 50,
) -> list[str]:
    """Identify proteins with the largest absolute mean difference between two groups.

    Parameters
    ----------
    df_a, df_b : pd.DataFrame
        Two group matrices sharing the same protein columns.
    k : int, optional
        Number of top features to return.  Defaults to 50.

    Returns
    -------
    list[str]
        Column names of the *k* proteins with the highest |mean(A) - mean(B)|,
        ordered from largest to smallest difference.
    """
    features = [c for c in df_a.columns if c in df_b.columns]
    if not features:
        raise ValueError("The two groups share no protein columns.")
    k = min(k, len(features))
    diff = (df_a[features].mean() - df_b[features].mean()).abs()
    return diff.sort_values(ascending=False).head(k).index.tolist()
