import matplotlib.pyplot as plt
import pandas as pd
import pytest
from scipy.cluster.hierarchy import fcluster

from protviz.core.cluster_utils import (
    correlation_order,
    cut_tree,
    hierarchical_clustering,
    protein_correlation,
    run_pca,
    within_cluster_variance,
)
from protviz.core.data_utils import diagnosis_labels, impute_column_median, run_level_table
from protviz.core.plot_utils import (
    plot_bar,
    plot_box,
    plot_clustered_heatmap,
    plot_correlation_heatmap,
    plot_dendrogram,
    plot_elbow,
    plot_histogram,
    plot_pca_biplot,
    plot_profile,
    plot_scatter,
    plot_upset,
    plot_venn,
    plot_volcano,
    save_or_show,
)
from protviz.core.stats_utils import group_comparison, pairwise_contrasts
from protviz.styles.colors import DIAGNOSIS_COLORS, color_map


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def matrix(sample_matrix):
    return impute_column_median(sample_matrix)


@pytest.fixture
def table(processed):
    return run_level_table(processed)


def test_color_map_is_stable():
    colors = color_map(["Healthy", "CRC", "Other"], DIAGNOSIS_COLORS)
    assert colors["CRC"] == DIAGNOSIS_COLORS["CRC"]
    assert colors["Healthy"] == DIAGNOSIS_COLORS["Healthy"]
    assert colors["Other"] not in DIAGNOSIS_COLORS.values()
    assert color_map(["Other", "CRC"], DIAGNOSIS_COLORS) == {
        "CRC": colors["CRC"], "Other": colors["Other"],
    }


def test_correlation_heatmap(matrix):
    corr = protein_correlation(matrix)
    order = correlation_order(corr)
    ax = plot_correlation_heatmap(corr, order, max_labels=30)
    assert [t.get_text() for t in ax.get_xticklabels()] == order
    ax = plot_correlation_heatmap(corr, order, max_labels=5)
    assert ax.get_xticklabels() == []


def test_scatter_with_groups(matrix):
    pca = run_pca(matrix)
    ax = plot_scatter(pca.scores, "PC1", "PC2", hue=diagnosis_labels(matrix.index),
                      known_colors=DIAGNOSIS_COLORS, annotate=True)
    labels = [t.get_text() for t in ax.get_legend().get_texts()]
    assert labels == ["CRC", "Healthy"]


def test_elbow_and_bar(matrix):
    wss = within_cluster_variance(matrix, range(1, 5), random_state=0)
    ax = plot_elbow(wss, chosen_k=2)
    assert len(ax.lines) == 2
    ax = plot_bar(pd.Series({"B vs A": 3, "C vs A": 0}))
    assert len(ax.patches) == 2


def test_box_histogram_profile(table):
    ax = plot_box(table, by="run", color_by="condition")
    assert len(ax.get_xticklabels()) == table["run"].nunique()
    ax = plot_histogram(table["log2_intensity"], bins=20)
    assert len(ax.patches) == 20
    ax = plot_profile(table, "P1")
    assert ax.get_title() == "P1"
    with pytest.raises(ValueError):
        plot_profile(table, "nope")


def test_dendrogram_and_heatmap(matrix):
    Z = hierarchical_clustering(matrix)
    labels = diagnosis_labels(matrix.index)
    ax = plot_dendrogram(Z, list(matrix.index), n_clusters=2, label_groups=labels,
                         known_colors=DIAGNOSIS_COLORS)
    assert len(ax.get_xticklabels()) == len(matrix)
    cut = ax.lines[-1].get_ydata()[0]
    assert cut == pytest.approx((Z[-2, 2] + Z[-1, 2]) / 2)
    assert Z[-2, 2] < cut < Z[-1, 2]
    by_height = fcluster(Z, t=cut, criterion="distance")
    table = pd.crosstab(cut_tree(Z, 2, matrix.index).to_numpy(), by_height)
    assert table.shape == (2, 2)
    assert ((table > 0).sum(axis=1) == 1).all()
    fig = plot_clustered_heatmap(matrix.iloc[:, :8], row_groups=labels,
                                 known_colors=DIAGNOSIS_COLORS)
    assert len(fig.axes) >= 4


def test_pca_biplot(matrix):
    ax = plot_pca_biplot(run_pca(matrix), groups=diagnosis_labels(matrix.index), n_loadings=3)
    assert ax.get_xlabel().startswith("PC1 (")


def test_volcano(table):
    results = group_comparison(table, pairwise_contrasts(["Control", "TreatA", "TreatB"]))
    ax = plot_volcano(results, "TreatA vs Control", alpha=0.05, fc_cutoff=1.0)
    assert "TreatA vs Control" in ax.get_title()
    with pytest.raises(ValueError):
        plot_volcano(results, "no such contrast")


def test_venn_and_upset(tmp_path):
    sets = {"x": {"A", "B", "C"}, "y": {"B", "C", "D"}, "z": {"C", "E"}}
    ax = plot_venn({k: sets[k] for k in ("x", "y")})
    assert ax is not None
    plot_venn(sets)
    with pytest.raises(ValueError):
        plot_venn({"x": {"A"}})
    fig = plot_upset(dict(sets, w={"A"}))
    assert len(fig.axes) >= 3
    counts = [t.get_text() for a in fig.axes for t in a.texts]
    assert counts.count("1") == 5
    save_or_show(fig, tmp_path / "upset.png")
    assert (tmp_path / "upset.png").exists()
    with pytest.raises(ValueError):
        plot_upset({"x": set(), "y": set()})


def test_save_or_show_writes_file(tmp_path):
    fig, ax = plt.subplots()
    ax.plot([0, 1], [0, 1])
    out = tmp_path / "figs" / "line.png"
    save_or_show(fig, out)
    assert out.exists()
