"""
cluster_utils.py
----------------
Clustering and dimension reduction on a sample-by-protein matrix.

Every routine is a thin wrapper around scipy / scikit-learn that returns the
fitted values as labelled pandas objects. Stochastic methods (k-means,
t-SNE) record the seed they were run with in their result.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import fcluster, leaves_list, linkage
from scipy.spatial.distance import pdist, squareform
from sklearn.cluster import KMeans
from sklearn.decomposition import PCA
from sklearn.manifold import TSNE
from sklearn.preprocessing import StandardScaler

logger = logging.getLogger(__name__)


class KMeansResult(NamedTuple):
    labels: pd.Series
    centers: pd.DataFrame
    inertia: float
    random_state: int | None


class PCAResult(NamedTuple):
    scores: pd.DataFrame
    loadings: pd.DataFrame
    explained_variance_ratio: pd.Series


class TSNEResult(NamedTuple):
    embedding: pd.DataFrame
    random_state: int | None


def _check_complete(matrix: pd.DataFrame) -> np.ndarray:
    X = matrix.to_numpy(dtype=float)
    if np.isnan(X).any():
        raise ValueError(
            "Matrix contains missing values; impute first "
            "(see protviz.core.data_utils.impute_column_median)."
        )
    return X


# ---------------------------------------------------------------------------
# Hierarchical clustering
# ---------------------------------------------------------------------------

def hierarchical_clustering(
    matrix: pd.DataFrame,
    method: str = "complete",
    metric: str = "euclidean",
) -> np.ndarray:
    """Agglomerative clustering of the rows of *matrix*.

    Parameters
    ----------
    matrix : pd.DataFrame
        Complete sample-by-protein matrix.
    method : str, optional
        Linkage rule passed to :func:`scipy.cluster.hierarchy.linkage`.
        Defaults to ``"complete"``.
    metric : str, optional
        Pairwise dissimilarity passed to :func:`scipy.spatial.distance.pdist`.
        Defaults to ``"euclidean"``.

    Returns
    -------
    np.ndarray
        Linkage matrix of shape ``(n_samples - 1, 4)``.
    """
    X = _check_complete(matrix)
    logger.info(
        "Hierarchical clustering of %d samples (%s linkage, %s distance)",
        X.shape[0], method, metric,
    )
    return linkage(pdist(X, metric=metric), method=method)


def cut_tree(Z: np.ndarray, n_clusters: int, index: pd.Index) -> pd.Series:
    """Flat cluster labels (1..n_clusters) from a linkage matrix."""
    labels = fcluster(Z, t=n_clusters, criterion="maxclust")
    return pd.Series(labels, index=index, name="cluster")


def protein_correlation(matrix: pd.DataFrame, method: str = "pearson") -> pd.DataFrame:
    """Protein-by-protein correlation across the samples of a complete matrix.

    Constant proteins have an undefined correlation; it is reported as 0.
    """
    _check_complete(matrix)
    corr = matrix.astype(float).corr(method=method)
    n_const = int((matrix.std() == 0).sum())
    if n_const:
        logger.warning("%d constant protein(s) get zero correlation", n_const)
    return corr.fillna(0.0)


def correlation_order(corr: pd.DataFrame, method: str = "average") -> list[str]:
    """Proteins ordered by clustering on correlation distance ``1 - r``."""
    if len(corr) < 2:
        return list(corr.columns)
    D = np.clip(1.0 - corr.to_numpy(dtype=float), 0.0, 2.0)
    np.fill_diagonal(D, 0.0)
    D = (D + D.T) / 2
    Z = linkage(squareform(D, checks=False), method=method)
    return [corr.columns[i] for i in leaves_list(Z)]


# ---------------------------------------------------------------------------
# k-means
# ---------------------------------------------------------------------------

def kmeans_clustering(
    matrix: pd.DataFrame,
    n_clusters: int,
    random_state: int | None = None,
    n_init: int = 10,
) -> KMeansResult:
    """k-means clustering of the rows of *matrix*.

    The same *random_state* always yields the same labels; ``None`` lets the
    initialization vary between calls.
    """
    X = _check_complete(matrix)
    km = KMeans(n_clusters=n_clusters, n_init=n_init, random_state=random_state)
    labels = km.fit_predict(X)
    logger.info(
        "k-means: k=%d  inertia=%.3f  seed=%s", n_clusters, km.inertia_, random_state
    )
    return KMeansResult(
        labels=pd.Series(labels + 1, index=matrix.index, name="cluster"),
        centers=pd.DataFrame(
            km.cluster_centers_,
            index=pd.RangeIndex(1, n_clusters + 1, name="cluster"),
            columns=matrix.columns,
        ),
        inertia=float(km.inertia_),
        random_state=random_state,
    )


def within_cluster_variance(
    matrix: pd.DataFrame,
    k_values=range(1, 11),
    random_state: int | None = None,
) -> pd.Series:
    """Total within-cluster sum of squares for each candidate k (elbow curve)."""
    k_values = [k for k in k_values if k <= len(matrix)]
    wss = {
        k: kmeans_clustering(matrix, k, random_state=random_state).inertia
        for k in k_values
    }
    return pd.Series(wss, name="within_ss").rename_axis("k")


# ---------------------------------------------------------------------------
# Dimension reduction
# ---------------------------------------------------------------------------

def run_pca(
    matrix: pd.DataFrame,
    n_components: int | None = None,
    scale: bool = False,
) -> PCAResult:
    """Principal component analysis of the rows of *matrix*.

    Parameters
    ----------
    matrix : pd.DataFrame
        Complete sample-by-protein matrix.
    n_components : int or None, optional
        Number of components; all of them when *None*.
    scale : bool, optional
        Standardize each protein to unit variance before fitting.

    Returns
    -------
    PCAResult
        ``scores`` (samples x PCs), ``loadings`` (proteins x PCs) and the
        explained variance ratio per PC, ranked from largest to smallest.
    """
    X = _check_complete(matrix)
    if scale:
        X = StandardScaler().fit_transform(X)

    pca = PCA(n_components=n_components)
    scores = pca.fit_transform(X)
    pcs = [f"PC{i + 1}" for i in range(pca.n_components_)]

    ratio = pd.Series(pca.explained_variance_ratio_, index=pcs, name="explained_variance_ratio")
    logger.info(
        "PCA: %d components, first two explain %.1f%%",
        len(pcs), 100.0 * ratio.iloc[:2].sum(),
    )
    return PCAResult(
        scores=pd.DataFrame(scores, index=matrix.index, columns=pcs),
        loadings=pd.DataFrame(pca.components_.T, index=matrix.columns, columns=pcs),
        explained_variance_ratio=ratio,
    )


def run_tsne(
    matrix: pd.DataFrame,
    perplexity: float = 30.0,
    max_iter: int = 1000,
    random_state: int | None = None,
) -> TSNEResult:
    """Two-dimensional t-SNE embedding of the rows of *matrix*."""
    X = _check_complete(matrix)
    if perplexity >= X.shape[0]:
        raise ValueError(
            f"perplexity ({perplexity}) must be smaller than the number of samples ({X.shape[0]})"
        )
    tsne = TSNE(
        n_components=2,
        perplexity=perplexity,
        max_iter=max_iter,
        random_state=random_state,
        init="pca",
        learning_rate="auto",
    )
    embedding = tsne.fit_transform(X)
    logger.info(
        "t-SNE: perplexity=%s  max_iter=%d  seed=%s  KL=%.3f",
        perplexity, max_iter, random_state, tsne.kl_divergence_,
    )
    return TSNEResult(
        embedding=pd.DataFrame(embedding, index=matrix.index, columns=["tSNE1", "tSNE2"]),
        random_state=random_state,
    )
