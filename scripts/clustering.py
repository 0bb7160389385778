"""Clustering and dimension reduction of a sample-by-protein matrix.

Operates on a sample-by-protein matrix (e.g. the CRC cohort: rows named
``<diagnosis>_<id>``, one column per protein). Performs:
  1. Median imputation of missing values
  2. Diagnosis labels from the row-name prefix
  3. Hierarchical clustering (complete linkage, Euclidean) + dendrogram
  4. k-means with a recorded seed + elbow plot over candidate k
  5. PCA (scores + biplot) and t-SNE embedding
  6. Clustered heatmap of the most differential proteins
  7. Correlation heatmap of the same proteins in clustered order

Outputs (when --save-results):
  results/<results-subdir>/clusters.csv
  results/<results-subdir>/pca_variance.csv
  results/<results-subdir>/*.png
"""

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parent.parent))

import argparse
import time

import matplotlib
import pandas as pd

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
from protviz.core.data_utils import (
    create_subsets,
    diagnosis_labels,
    get_top_diff_features,
    impute_column_median,
)
from protviz.core.io_utils import load_sample_matrix
from protviz.core.log_utils import setup_logging
from protviz.styles.colors import DIAGNOSIS_COLORS

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
LINKAGE = "complete"
METRIC = "euclidean"
N_CLUSTERS = 2
MAX_K = 10
PERPLEXITY = 10.0
TSNE_ITER = 1000
RANDOM_STATE = 42
N_HEATMAP_PROTEINS = 50


def main() -> None:
    start = time.time()

    parser = argparse.ArgumentParser(
        description="Cluster samples and reduce dimensions of a sample-by-protein matrix."
    )
    parser.add_argument(
        "--matrix-path",
        type=Path,
        default=Path("data/raw/crc_matrix.csv"),
        help="Sample-by-protein matrix CSV (default: data/raw/crc_matrix.csv).",
    )
    parser.add_argument("--linkage", type=str, default=LINKAGE,
                        help=f"Hierarchical linkage rule (default: {LINKAGE}).")
    parser.add_argument("--metric", type=str, default=METRIC,
                        help=f"Distance metric (default: {METRIC}).")
    parser.add_argument("--n-clusters", type=int, default=N_CLUSTERS,
                        help=f"Number of clusters for tree cut and k-means (default: {N_CLUSTERS}).")
    parser.add_argument("--max-k", type=int, default=MAX_K,
                        help=f"Largest k on the elbow plot (default: {MAX_K}).")
    parser.add_argument("--perplexity", type=float, default=PERPLEXITY,
                        help=f"t-SNE perplexity (default: {PERPLEXITY}).")
    parser.add_argument("--tsne-iter", type=int, default=TSNE_ITER,
                        help=f"t-SNE iterations (default: {TSNE_ITER}).")
    parser.add_argument("--random-state", type=int, default=RANDOM_STATE,
                        help=f"Seed for k-means and t-SNE (default: {RANDOM_STATE}).")
    parser.add_argument("--scale", action="store_true",
                        help="Standardize proteins before PCA.")
    parser.add_argument(
        "--results-subdir",
        type=str,
        default="clustering",
        help="Subdirectory under results/ for output files (default: clustering).",
    )
    parser.add_argument(
        "--save-results",
        action="store_true",
        help="Save outputs to disk and log to file; otherwise log to terminal and show plots.",
    )
    parser.add_argument(
        "--log-subdir",
        type=str,
        default="clustering",
        help="Subdirectory under logs/ for log files (default: clustering).",
    )
    args = parser.parse_args()

    if args.save_results:
        matplotlib.use("Agg")

    from protviz.core.plot_utils import (
        plot_clustered_heatmap,
        plot_correlation_heatmap,
        plot_dendrogram,
        plot_elbow,
        plot_pca_biplot,
        plot_scatter,
        save_or_show,
    )

    logger = setup_logging(args.save_results, args.log_subdir, "clustering")
    logger.info("Starting clustering.py")
    logger.info(
        "Args: matrix_path=%s  linkage=%s  metric=%s  n_clusters=%d  perplexity=%s  random_state=%d",
        args.matrix_path, args.linkage, args.metric, args.n_clusters,
        args.perplexity, args.random_state,
    )

    # Step 1: Load + impute
    matrix = impute_column_median(load_sample_matrix(args.matrix_path))
    labels = diagnosis_labels(matrix.index)
    logger.info("Diagnosis groups:\n%s", labels.value_counts().to_string())

    results_dir = Path("results") / args.results_subdir
    if args.save_results:
        results_dir.mkdir(parents=True, exist_ok=True)
    out = (lambda name: results_dir / name) if args.save_results else (lambda name: None)

    # Step 2: Hierarchical clustering
    Z = hierarchical_clustering(matrix, method=args.linkage, metric=args.metric)
    hc_labels = cut_tree(Z, args.n_clusters, matrix.index).rename("hclust")
    logger.info("Tree cut vs diagnosis:\n%s", pd.crosstab(hc_labels, labels).to_string())

    ax = plot_dendrogram(Z, list(matrix.index), n_clusters=args.n_clusters,
                         label_groups=labels, known_colors=DIAGNOSIS_COLORS)
    ax.set_title(f"Hierarchical clustering ({args.linkage} linkage, {args.metric})")
    save_or_show(ax.get_figure(), out("dendrogram.png"))

    # Step 3: k-means
    wss = within_cluster_variance(matrix, range(1, args.max_k + 1), random_state=args.random_state)
    ax = plot_elbow(wss, chosen_k=args.n_clusters)
    save_or_show(ax.get_figure(), out("elbow.png"))

    km = kmeans_clustering(matrix, args.n_clusters, random_state=args.random_state)
    km_labels = km.labels.rename("kmeans")
    logger.info("k-means vs diagnosis:\n%s", pd.crosstab(km_labels, labels).to_string())

    # Step 4: PCA
    pca = run_pca(matrix, scale=args.scale)
    logger.info(
        "Explained variance ratio (first 5):\n%s",
        pca.explained_variance_ratio.head(5).to_string(),
    )
    ax = plot_scatter(pca.scores, "PC1", "PC2", hue=labels, known_colors=DIAGNOSIS_COLORS,
                      title="PCA scores by diagnosis")
    save_or_show(ax.get_figure(), out("pca_diagnosis.png"))

    ax = plot_scatter(pca.scores, "PC1", "PC2", hue=km_labels, title="PCA scores by k-means cluster")
    save_or_show(ax.get_figure(), out("pca_kmeans.png"))

    ax = plot_pca_biplot(pca, groups=labels, known_colors=DIAGNOSIS_COLORS)
    save_or_show(ax.get_figure(), out("pca_biplot.png"))

    # Step 5: t-SNE
    tsne = run_tsne(matrix, perplexity=args.perplexity, max_iter=args.tsne_iter,
                    random_state=args.random_state)
    ax = plot_scatter(tsne.embedding, "tSNE1", "tSNE2", hue=labels, known_colors=DIAGNOSIS_COLORS,
                      title=f"t-SNE (perplexity {args.perplexity}, seed {tsne.random_state})")
    save_or_show(ax.get_figure(), out("tsne.png"))

    # Step 6: Heatmap of the most differential proteins
    subsets = create_subsets(matrix, labels)
    if len(subsets) == 2:
        group_a, group_b = subsets.values()
        features = get_top_diff_features(group_a, group_b, k=N_HEATMAP_PROTEINS)
    else:
        features = matrix.var().sort_values(ascending=False).head(N_HEATMAP_PROTEINS).index.tolist()
    fig = plot_clustered_heatmap(matrix[features], method=args.linkage, metric=args.metric,
                                 row_groups=labels, known_colors=DIAGNOSIS_COLORS)
    save_or_show(fig, out("heatmap.png"))

    # Step 7: Protein-protein correlation of the heatmap proteins
    corr = protein_correlation(matrix[features])
    ax = plot_correlation_heatmap(
        corr, correlation_order(corr, method="average"),
        title=f"Correlation of the top {len(features)} proteins",
    )
    save_or_show(ax.get_figure(), out("correlation.png"))

    if args.save_results:
        clusters = pd.concat([labels, hc_labels, km_labels], axis=1)
        clusters.to_csv(results_dir / "clusters.csv")
        pca.explained_variance_ratio.to_csv(results_dir / "pca_variance.csv")
        logger.info("Saved cluster assignments and PCA variance to: %s", results_dir)

    logger.info("Finished in %.2f s", time.time() - start)


if __name__ == "__main__":
    main()
