import numpy as np
import pandas as pd
import pytest

from protviz.core.cluster_utils import (
    correlation_order,
    cut_tree,
    hierarchical_clustering,
    kmeans_clustering,
    protein_correlation,
    run_pca,
    run_tsne,
    within_cluster_variance,
)
from protviz.core.data_utils import diagnosis_labels, impute_column_median


@pytest.fixture
def matrix(sample_matrix):
    return impute_column_median(sample_matrix)


def _same_partition(a: pd.Series, b: pd.Series) -> bool:
    return pd.crosstab(a, b).gt(0).sum(axis=1).eq(1).all()


def test_hierarchical_clustering_separates_groups(matrix):
    Z = hierarchical_clustering(matrix, method="complete", metric="euclidean")
    assert Z.shape == (len(matrix) - 1, 4)
    labels = cut_tree(Z, 2, matrix.index)
    assert set(labels) == {1, 2}
    assert _same_partition(labels, diagnosis_labels(matrix.index))


def test_clustering_rejects_missing_values(sample_matrix):
    with pytest.raises(ValueError, match="missing values"):
        hierarchical_clustering(sample_matrix)


def test_kmeans_fixed_seed_is_reproducible(matrix):
    a = kmeans_clustering(matrix, 3, random_state=7)
    b = kmeans_clustering(matrix, 3, random_state=7)
    pd.testing.assert_series_equal(a.labels, b.labels)
    pd.testing.assert_frame_equal(a.centers, b.centers)
    assert a.random_state == 7


def test_kmeans_recovers_groups(matrix):
    km = kmeans_clustering(matrix, 2, random_state=0)
    assert _same_partition(km.labels, diagnosis_labels(matrix.index))
    assert km.centers.shape == (2, matrix.shape[1])


def test_kmeans_without_seed_runs(matrix):
    km = kmeans_clustering(matrix, 2)
    assert km.random_state is None
    assert len(km.labels) == len(matrix)


def test_within_cluster_variance_decreases(matrix):
    wss = within_cluster_variance(matrix, range(1, 6), random_state=0)
    assert wss.index.tolist() == [1, 2, 3, 4, 5]
    assert (wss.diff().dropna() <= 1e-9).all()


def test_within_cluster_variance_skips_k_above_samples(matrix):
    wss = within_cluster_variance(matrix, [2, 50], random_state=0)
    assert wss.index.tolist() == [2]


def test_pca_variance_ranked(matrix):
    pca = run_pca(matrix)
    ratio = pca.explained_variance_ratio
    assert ratio.index[0] == "PC1"
    assert (ratio.diff().dropna() <= 1e-12).all()
    assert ratio.sum() == pytest.approx(1.0)
    assert pca.scores.shape[0] == len(matrix)
    assert pca.loadings.shape[0] == matrix.shape[1]


def test_pca_scaled_and_truncated(matrix):
    pca = run_pca(matrix, n_components=3, scale=True)
    assert pca.scores.columns.tolist() == ["PC1", "PC2", "PC3"]
    assert pca.explained_variance_ratio.sum() < 1.0


def test_tsne_fixed_seed_is_reproducible(matrix):
    a = run_tsne(matrix, perplexity=4, max_iter=300, random_state=3)
    b = run_tsne(matrix, perplexity=4, max_iter=300, random_state=3)
    np.testing.assert_allclose(a.embedding.to_numpy(), b.embedding.to_numpy())
    assert a.embedding.shape == (len(matrix), 2)
    assert a.random_state == 3


def test_tsne_perplexity_must_be_below_sample_count(matrix):
    with pytest.raises(ValueError, match="perplexity"):
        run_tsne(matrix, perplexity=len(matrix))


def test_tsne_without_seed(matrix):
    tsne = run_tsne(matrix, perplexity=4, max_iter=300)
    assert tsne.random_state is None
    assert tsne.embedding.shape == (len(matrix), 2)
    assert list(tsne.embedding.index) == list(matrix.index)
    assert np.isfinite(tsne.embedding.to_numpy()).all()


def test_protein_correlation(matrix):
    corr = protein_correlation(matrix)
    assert corr.shape == (20, 20)
    np.testing.assert_allclose(np.diag(corr), 1.0)
    # the five shifted proteins move together across diagnosis groups
    assert (corr.loc["PROT00", ["PROT01", "PROT02", "PROT03", "PROT04"]] > 0.5).all()


def test_protein_correlation_requires_complete_matrix(sample_matrix):
    with pytest.raises(ValueError, match="impute"):
        protein_correlation(sample_matrix)


def test_correlation_order_groups_correlated_proteins(matrix):
    order = correlation_order(protein_correlation(matrix))
    assert sorted(order) == sorted(matrix.columns)
    positions = sorted(order.index(f"PROT{j:02d}") for j in range(5))
    assert positions[-1] - positions[0] == 4
