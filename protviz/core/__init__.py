"""
protviz.core
------------
Core reusable modules for protviz.

Modules
-------
io_utils
    Readers for the raw measurement table, the run annotation and
    sample-by-protein matrices.
quant_utils
    Normalization, censored-value imputation and run-level summarization.
data_utils
    Run-level table reshaping, median imputation and label derivation.
stats_utils
    Contrast-based group comparison and significant-protein sets.
cluster_utils
    Hierarchical clustering, k-means, PCA, t-SNE and protein correlation.
cache_utils
    Schema-tagged flat-file caching of intermediate results.
plot_utils
    Scatter, box, histogram, dendrogram, heatmap, biplot, volcano,
    Venn and UpSet plots.
log_utils
    Logging setup for the pipeline scripts.
"""

from .io_utils import load_raw_table, load_annotation, load_sample_matrix
from .quant_utils import (
    ProcessedData,
    process_data,
    process_data_cached,
    select_endogenous,
    tukey_median_polish,
)
from .data_utils import (
    run_level_table,
    derive_tech_replicate,
    abundance_matrix,
    impute_column_median,
    diagnosis_labels,
    create_subsets,
    get_top_diff_features,
)
from .stats_utils import (
    make_contrast,
    pairwise_contrasts,
    group_comparison,
    group_comparison_cached,
    significant_proteins,
    count_significant,
)
from .cluster_utils import (
    hierarchical_clustering,
    cut_tree,
    protein_correlation,
    correlation_order,
    kmeans_clustering,
    within_cluster_variance,
    run_pca,
    run_tsne,
)
from .cache_utils import save_cache, load_cache, cached
from .log_utils import setup_logging

__all__ = [
    "load_raw_table",
    "load_annotation",
    "load_sample_matrix",
    "ProcessedData",
    "process_data",
    "process_data_cached",
    "select_endogenous",
    "tukey_median_polish",
    "run_level_table",
    "derive_tech_replicate",
    "abundance_matrix",
    "impute_column_median",
    "diagnosis_labels",
    "create_subsets",
    "get_top_diff_features",
    "make_contrast",
    "pairwise_contrasts",
    "group_comparison",
    "group_comparison_cached",
    "significant_proteins",
    "count_significant",
    "hierarchical_clustering",
    "cut_tree",
    "protein_correlation",
    "correlation_order",
    "kmeans_clustering",
    "within_cluster_variance",
    "run_pca",
    "run_tsne",
    "save_cache",
    "load_cache",
    "cached",
    "setup_logging",
]
