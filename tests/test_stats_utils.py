import numpy as np
import pandas as pd
import pytest

from protviz.core.data_utils import run_level_table
from protviz.core.stats_utils import (
    adjust_pvalues,
    count_significant,
    group_comparison,
    group_comparison_cached,
    make_contrast,
    pairwise_contrasts,
    significant_proteins,
)


@pytest.fixture
def results(processed):
    table = run_level_table(processed)
    return group_comparison(table, pairwise_contrasts(["Control", "TreatA", "TreatB"]))


def test_pairwise_contrasts():
    contrasts = pairwise_contrasts(["A", "B", "C"])
    assert contrasts.index.tolist() == ["B vs A", "C vs A", "C vs B"]
    assert contrasts.loc["C vs B"].tolist() == [0.0, -1.0, 1.0]
    np.testing.assert_allclose(contrasts.sum(axis=1), 0.0)


def test_pairwise_contrasts_needs_two_conditions():
    with pytest.raises(ValueError):
        pairwise_contrasts(["A"])


def test_make_contrast_unknown_condition():
    with pytest.raises(ValueError, match="Condition 'Z'"):
        make_contrast(["A", "B"], "Z", "A")


def test_group_comparison_columns_and_rows(results):
    assert list(results.columns) == [
        "protein", "label", "log2fc", "se", "tstat", "df", "pvalue", "adj_pvalue", "issue",
    ]
    assert len(results) == 6 * 3
    assert (results["issue"] == "").all()


def test_group_comparison_detects_effects(results):
    p1 = results.query("protein == 'P1' and label == 'TreatA vs Control'").iloc[0]
    assert p1["log2fc"] == pytest.approx(3.0, abs=0.5)
    assert p1["adj_pvalue"] < 0.05

    p2 = results.query("protein == 'P2' and label == 'TreatB vs Control'").iloc[0]
    assert p2["log2fc"] < -1.0
    assert p2["adj_pvalue"] < 0.05

    sets = significant_proteins(results)
    assert "P1" in sets["TreatA vs Control"]
    assert "P2" in sets["TreatB vs Control"]


def test_count_significant_matches_strict_threshold(results):
    counts = count_significant(results, alpha=0.05)
    for label in results["label"].unique():
        sub = results[results["label"] == label]
        assert counts[label] == int((sub["adj_pvalue"] < 0.05).sum())


def test_significant_is_strict():
    results = pd.DataFrame({
        "protein": ["A", "B", "C"],
        "label": ["x", "x", "x"],
        "adj_pvalue": [0.01, 0.05, np.nan],
    })
    assert significant_proteins(results) == {"x": {"A"}}
    assert count_significant(results)["x"] == 1


def test_missing_condition_is_reported():
    table = pd.DataFrame({
        "protein": ["Q"] * 6,
        "condition": ["A", "A", "A", "B", "B", "B"],
        "log2_intensity": [1.0, 1.1, 0.9, 2.0, 2.1, 1.9],
    })
    table = pd.concat([
        table,
        pd.DataFrame({"protein": ["R"] * 3, "condition": ["C"] * 3, "log2_intensity": [1.0, 2.0, 3.0]}),
    ])
    res = group_comparison(table, pairwise_contrasts(["A", "B", "C"]))
    q_ba = res.query("protein == 'Q' and label == 'B vs A'").iloc[0]
    assert q_ba["issue"] == ""
    assert q_ba["log2fc"] == pytest.approx(1.0)
    q_ca = res.query("protein == 'Q' and label == 'C vs A'").iloc[0]
    assert q_ca["issue"] == "missing_condition"
    assert np.isnan(q_ca["pvalue"])


def test_no_residual_df_is_reported():
    table = pd.DataFrame({
        "protein": ["Q", "Q"],
        "condition": ["A", "B"],
        "log2_intensity": [1.0, 2.0],
    })
    res = group_comparison(table, make_contrast(["A", "B"], "B", "A"))
    assert res.loc[0, "issue"] == "no_residual_df"


def test_contrast_validation(processed):
    table = run_level_table(processed)
    bad = pd.DataFrame([[1.0, 1.0, 0.0]], columns=["Control", "TreatA", "TreatB"], index=["bad"])
    with pytest.raises(ValueError, match="sum to zero"):
        group_comparison(table, bad)
    unknown = make_contrast(["Control", "Other"], "Other", "Control")
    with pytest.raises(ValueError, match="absent from the data"):
        group_comparison(table, unknown)


def test_adjust_pvalues_is_per_label():
    results = pd.DataFrame({
        "label": ["x", "x", "y"],
        "pvalue": [0.01, 0.04, 0.01],
    })
    adj = adjust_pvalues(results)
    assert adj.loc[2, "adj_pvalue"] == pytest.approx(0.01)
    assert adj.loc[0, "adj_pvalue"] == pytest.approx(0.02)
    assert adj.loc[1, "adj_pvalue"] == pytest.approx(0.04)


def test_group_comparison_cached(processed, tmp_path):
    table = run_level_table(processed)
    contrasts = make_contrast(["Control", "TreatA", "TreatB"], "TreatA", "Control")
    cache = tmp_path / "gc.joblib"
    first = group_comparison_cached(table, contrasts, cache_path=cache)
    second = group_comparison_cached(table.iloc[:0], contrasts, cache_path=cache)
    pd.testing.assert_frame_equal(first, second)


def test_group_comparison_cached_recomputes_for_new_contrast(processed, tmp_path):
    table = run_level_table(processed)
    conditions = ["Control", "TreatA", "TreatB"]
    cache = tmp_path / "gc.joblib"
    group_comparison_cached(table, make_contrast(conditions, "TreatA", "Control"), cache_path=cache)

    results = group_comparison_cached(
        table, make_contrast(conditions, "TreatB", "Control"), cache_path=cache
    )

    assert set(results["label"]) == {"TreatB vs Control"}
    assert "P2" in significant_proteins(results)["TreatB vs Control"]
