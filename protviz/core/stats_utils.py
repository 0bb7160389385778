"""
stats_utils.py
--------------
Group comparison on run-level protein abundances.

For every protein a cell-means linear model ``log2_intensity ~ condition``
is fitted with statsmodels OLS, and each requested contrast (a linear
combination of condition means) is tested with a t-test on the fitted
coefficients. P-values are Benjamini-Hochberg adjusted within each contrast.
"""

from __future__ import annotations

import logging
from itertools import combinations
from pathlib import Path

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.multitest import multipletests

from .cache_utils import cached

logger = logging.getLogger(__name__)

ALPHA = 0.05

RESULT_COLUMNS = [
    "protein", "label", "log2fc", "se", "tstat", "df", "pvalue", "adj_pvalue", "issue",
]


# ---------------------------------------------------------------------------
# Contrasts
# ---------------------------------------------------------------------------

def make_contrast(conditions: list[str], numerator: str, denominator: str) -> pd.DataFrame:
    """One-row contrast matrix comparing *numerator* against *denominator*.

    >>> make_contrast(["A", "B", "C"], "B", "A")
              A    B    C
    B vs A -1.0  1.0  0.0
    """
    for cond in (numerator, denominator):
        if cond not in conditions:
            raise ValueError(f"Condition '{cond}' not in {list(conditions)}")
    row = pd.Series(0.0, index=list(conditions))
    row[numerator] = 1.0
    row[denominator] = -1.0
    return row.to_frame(name=f"{numerator} vs {denominator}").T


def pairwise_contrasts(conditions: list[str]) -> pd.DataFrame:
    """Contrast matrix with one row per pair of conditions.

    For conditions ``[c1, c2, ...]`` in the given order, the row for the pair
    ``(ci, cj)`` with ``i < j`` is labelled ``"cj vs ci"``.
    """
    conditions = list(conditions)
    if len(conditions) < 2:
        raise ValueError("At least two conditions are required for a comparison.")
    rows = [make_contrast(conditions, b, a) for a, b in combinations(conditions, 2)]
    return pd.concat(rows)


def _check_contrasts(contrasts: pd.DataFrame, known: set[str]) -> None:
    unknown = [c for c in contrasts.columns if c not in known]
    if unknown:
        raise ValueError(f"Contrast refers to condition(s) absent from the data: {unknown}")
    sums = contrasts.sum(axis=1)
    bad = sums.index[~np.isclose(sums.to_numpy(dtype=float), 0.0)]
    if len(bad):
        raise ValueError(f"Contrast weights must sum to zero; offending rows: {list(bad)}")


# ---------------------------------------------------------------------------
# Model fitting
# ---------------------------------------------------------------------------

def _empty_row(protein: str, label: str, issue: str) -> dict:
    return {
        "protein": protein, "label": label, "log2fc": np.nan, "se": np.nan,
        "tstat": np.nan, "df": np.nan, "pvalue": np.nan, "issue": issue,
    }


def _test_protein(protein: str, sub: pd.DataFrame, contrasts: pd.DataFrame) -> list[dict]:
    """Fit the cell-means model for one protein and test every contrast."""
    sub = sub.dropna(subset=["log2_intensity"])
    present = sorted(sub["condition"].unique())
    design = pd.get_dummies(sub["condition"]).reindex(columns=present).astype(float)
    df_resid = len(sub) - len(present)

    fit = None
    if present and df_resid > 0:
        fit = sm.OLS(sub["log2_intensity"].to_numpy(dtype=float), design.to_numpy()).fit()

    rows = []
    for label, weights in contrasts.iterrows():
        involved = weights.index[weights != 0]
        if any(c not in present for c in involved):
            rows.append(_empty_row(protein, label, "missing_condition"))
            continue
        if fit is None:
            rows.append(_empty_row(protein, label, "no_residual_df"))
            continue

        L = weights.reindex(present, fill_value=0.0).to_numpy(dtype=float)
        tt = fit.t_test(L[np.newaxis, :])
        rows.append({
            "protein": protein,
            "label": label,
            "log2fc": float(np.asarray(tt.effect).item()),
            "se": float(np.asarray(tt.sd).item()),
            "tstat": float(np.asarray(tt.tvalue).item()),
            "df": float(fit.df_resid),
            "pvalue": float(np.asarray(tt.pvalue).item()),
            "issue": "",
        })
    return rows


def adjust_pvalues(results: pd.DataFrame, method: str = "fdr_bh") -> pd.DataFrame:
    """Add ``adj_pvalue`` by correcting ``pvalue`` separately within each label.

    Rows without a p-value are left out of the correction and keep NaN.
    """
    results = results.copy()
    results["adj_pvalue"] = np.nan
    for label, idx in results.groupby("label").groups.items():
        pvals = results.loc[idx, "pvalue"]
        ok = pvals.notna()
        if ok.any():
            _, adj, _, _ = multipletests(pvals[ok].to_numpy(), method=method)
            results.loc[pvals[ok].index, "adj_pvalue"] = adj
    return results


def group_comparison(
    run_level: pd.DataFrame,
    contrasts: pd.DataFrame,
    correction: str = "fdr_bh",
) -> pd.DataFrame:
    """Test every contrast for every protein.

    Parameters
    ----------
    run_level : pd.DataFrame
        Tidy run-level table with columns ``protein``, ``condition`` and
        ``log2_intensity``.
    contrasts : pd.DataFrame
        Contrast matrix: one row per comparison (index = label), one column
        per condition, weights summing to zero.
    correction : str, optional
        statsmodels ``multipletests`` method.  Defaults to Benjamini-Hochberg.

    Returns
    -------
    pd.DataFrame
        One row per (protein, label) with columns ``protein, label, log2fc,
        se, tstat, df, pvalue, adj_pvalue, issue``.
    """
    _check_contrasts(contrasts, set(run_level["condition"].astype(str).unique()))
    data = run_level.assign(condition=run_level["condition"].astype(str))

    logger.info(
        "Group comparison: %d proteins, %d contrast(s): %s",
        data["protein"].nunique(), len(contrasts), list(contrasts.index),
    )

    rows: list[dict] = []
    for protein, sub in data.groupby("protein", sort=True):
        rows.extend(_test_protein(protein, sub, contrasts))

    raw_columns = [c for c in RESULT_COLUMNS if c != "adj_pvalue"]
    results = adjust_pvalues(pd.DataFrame(rows, columns=raw_columns), method=correction)
    results = results[RESULT_COLUMNS]

    n_issue = int((results["issue"] != "").sum())
    if n_issue:
        logger.warning("%d protein/contrast pair(s) could not be tested", n_issue)
    for label, n in count_significant(results).items():
        logger.info("%s: %d significant protein(s) at adj. p < %.2f", label, n, ALPHA)
    return results


def group_comparison_cached(
    run_level: pd.DataFrame,
    contrasts: pd.DataFrame,
    cache_path: str | Path,
    recompute: bool = False,
    correction: str = "fdr_bh",
) -> pd.DataFrame:
    """:func:`group_comparison` backed by a flat-file cache at *cache_path*.

    A cache written for another contrast matrix or correction is recomputed.
    """
    params = {
        "contrasts": {
            label: {cond: float(w) for cond, w in row.items()}
            for label, row in contrasts.iterrows()
        },
        "correction": correction,
    }
    return cached(
        cache_path,
        "group_comparison",
        lambda: group_comparison(run_level, contrasts, correction=correction),
        recompute=recompute,
        params=params,
    )


# ---------------------------------------------------------------------------
# Significant sets
# ---------------------------------------------------------------------------

def significant_proteins(results: pd.DataFrame, alpha: float = ALPHA) -> dict[str, set[str]]:
    """Map each contrast label to the proteins with ``adj_pvalue < alpha``."""
    sig = results[results["adj_pvalue"] < alpha]
    return {
        label: set(sig.loc[sig["label"] == label, "protein"])
        for label in results["label"].unique()
    }


def count_significant(results: pd.DataFrame, alpha: float = ALPHA) -> pd.Series:
    """Number of significant proteins per contrast label."""
    sets = significant_proteins(results, alpha)
    return pd.Series({label: len(s) for label, s in sets.items()}, name="n_significant", dtype=int)
