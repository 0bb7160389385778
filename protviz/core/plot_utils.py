"""
plot_utils.py
-------------
Reusable plotting utilities for protviz.

Every function draws onto a supplied matplotlib ``Axes`` (or creates a new
figure when none is given) and returns what it drew on, so plots can be
composed into panels by the pipeline scripts.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.colors import LinearSegmentedColormap, ListedColormap
from matplotlib.patches import Patch
from scipy.cluster.hierarchy import linkage, dendrogram

from ..styles.colors import DIVERGING, REGULATION_COLORS, color_map, get_colors

logger = logging.getLogger(__name__)

COLOR = get_colors("palette")


def _get_ax(ax: plt.Axes | None, figsize=(8, 6)) -> plt.Axes:
    if ax is None:
        _, ax = plt.subplots(figsize=figsize)
    return ax


def save_or_show(fig: plt.Figure, path: str | Path | None = None, dpi: int = 300) -> None:
    """Save *fig* to *path* and close it, or show it when *path* is None."""
    if path is None:
        plt.show()
        return
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    logger.info("Saved figure to: %s", path)
    plt.close(fig)


# ---------------------------------------------------------------------------
# Correlation heatmap
# ---------------------------------------------------------------------------

def plot_correlation_heatmap(
    corr: pd.DataFrame,
    order: list[str] | None = None,
    title: str = "Protein-protein correlation",
    max_labels: int = 60,
    ax: plt.Axes | None = None,
) -> plt.Axes:
    """Heatmap of a protein correlation matrix, rows and columns in *order*.

    Protein names are printed on both axes when there are at most
    *max_labels* of them.
    """
    if order is not None:
        corr = corr.loc[order, order]

    ax = _get_ax(ax, figsize=(9, 8))
    im = ax.imshow(corr.to_numpy(), aspect="auto", vmin=-1.0, vmax=1.0,
                   cmap=LinearSegmentedColormap.from_list("protviz_div", DIVERGING))
    ax.get_figure().colorbar(im, ax=ax, label="Correlation")

    if len(corr) <= max_labels:
        ticks = np.arange(len(corr))
        ax.set_xticks(ticks, labels=corr.columns, rotation=90, fontsize=6)
        ax.set_yticks(ticks, labels=corr.index, fontsize=6)
    else:
        ax.set_xticks([])
        ax.set_yticks([])
    ax.set_title(title)
    return ax


# ---------------------------------------------------------------------------
# Basic plots
# ---------------------------------------------------------------------------

def plot_scatter(
    df: pd.DataFrame,
    x: str,
    y: str,
    hue: pd.Series | None = None,
    ax: plt.Axes | None = None,
    title: str = "",
    known_colors: dict | None = None,
    annotate: bool = False,
) -> plt.Axes:
    """Scatter *x* against *y*, coloured by the group labels in *hue*.

    Used for PCA scores, t-SNE embeddings and cluster assignments.
    """
    ax = _get_ax(ax)
    if hue is None:
        ax.scatter(df[x], df[y], s=40, color=COLOR["primary"], edgecolor="white")
    else:
        hue = hue.reindex(df.index).astype(str)
        colors = color_map(hue, known_colors)
        for lab, color in colors.items():
            sub = df[hue == lab]
            ax.scatter(sub[x], sub[y], s=40, color=color, edgecolor="white", label=lab)
        ax.legend(frameon=False, title=hue.name)

    if annotate:
        for name, row in df.iterrows():
            ax.annotate(str(name), (row[x], row[y]), fontsize=7, alpha=0.8)

    ax.set_xlabel(x)
    ax.set_ylabel(y)
    ax.set_title(title)
    return ax


def plot_elbow(
    wss: pd.Series,
    chosen_k: int | None = None,
    ax: plt.Axes | None = None,
) -> plt.Axes:
    """Line plot of total within-cluster sum of squares against k."""
    ax = _get_ax(ax, figsize=(6, 4))
    ax.plot(wss.index, wss.values, marker="o", color=COLOR["secondary"])
    if chosen_k is not None:
        ax.axvline(chosen_k, linestyle="--", color=COLOR["neutral"], label=f"k = {chosen_k}")
        ax.legend(frameon=False)
    ax.set_xlabel("Number of clusters k")
    ax.set_ylabel("Total within-cluster sum of squares")
    ax.set_title("Elbow plot")
    return ax


def plot_box(
    run_level: pd.DataFrame,
    by: str = "run",
    value: str = "log2_intensity",
    color_by: str | None = "condition",
    ax: plt.Axes | None = None,
) -> plt.Axes:
    """Box plot of *value* per level of *by* (e.g. one box per run)."""
    ax = _get_ax(ax, figsize=(12, 5))
    groups = list(run_level.groupby(by, sort=True))
    data = [g[value].dropna().to_numpy() for _, g in groups]
    names = [str(name) for name, _ in groups]

    bp = ax.boxplot(data, patch_artist=True, showfliers=False)
    ax.set_xticks(range(1, len(names) + 1))
    ax.set_xticklabels(names, rotation=90, fontsize=7)

    if color_by is not None and color_by in run_level.columns:
        group_of = run_level.drop_duplicates(by).set_index(by)[color_by].astype(str)
        colors = color_map(group_of)
        for patch, name in zip(bp["boxes"], [n for n, _ in groups]):
            patch.set_facecolor(colors[group_of[name]])
        ax.legend(
            handles=[Patch(color=c, label=lab) for lab, c in colors.items()],
            frameon=False, title=color_by,
        )
    else:
        for patch in bp["boxes"]:
            patch.set_facecolor(COLOR["primary"])

    ax.set_xlabel(by)
    ax.set_ylabel(value)
    return ax


def plot_histogram(
    values: pd.Series,
    bins: int = 50,
    ax: plt.Axes | None = None,
    xlabel: str | None = None,
    title: str = "",
) -> plt.Axes:
    """Histogram of a numeric series (missing values are ignored)."""
    ax = _get_ax(ax, figsize=(6, 4))
    ax.hist(values.dropna(), bins=bins, color=COLOR["primary"], edgecolor="white")
    ax.set_xlabel(xlabel or values.name or "")
    ax.set_ylabel("Count")
    ax.set_title(title)
    return ax


def plot_bar(
    counts: pd.Series,
    ax: plt.Axes | None = None,
    ylabel: str = "Significant proteins",
    title: str = "",
) -> plt.Axes:
    """Bar chart of one count per category, annotated with the value."""
    ax = _get_ax(ax, figsize=(6, 4))
    colors = get_colors("categorical")
    bars = ax.bar(
        [str(i) for i in counts.index], counts.values,
        color=[colors[i % len(colors)] for i in range(len(counts))],
    )
    for bar, n in zip(bars, counts.values):
        ax.annotate(
            str(n), (bar.get_x() + bar.get_width() / 2, bar.get_height()),
            ha="center", va="bottom", fontsize=9,
        )
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.tick_params(axis="x", rotation=45)
    return ax


def plot_profile(
    run_level: pd.DataFrame,
    protein: str,
    value: str = "log2_intensity",
    ax: plt.Axes | None = None,
) -> plt.Axes:
    """Run-level profile of one protein, runs grouped by condition."""
    sub = run_level[run_level["protein"] == protein]
    if sub.empty:
        raise ValueError(f"Protein '{protein}' not found in the run-level table")
    sub = sub.sort_values(["condition", "run"]).reset_index(drop=True)

    ax = _get_ax(ax, figsize=(10, 4))
    colors = color_map(sub["condition"])
    ax.plot(sub.index, sub[value], color=COLOR["neutral"], alpha=0.5, zorder=1)
    for cond, g in sub.groupby("condition"):
        ax.scatter(g.index, g[value], color=colors[str(cond)], label=str(cond), zorder=2)

    ax.set_xticks(sub.index)
    ax.set_xticklabels(sub["run"], rotation=90, fontsize=7)
    ax.set_ylabel(value)
    ax.set_title(protein)
    ax.legend(frameon=False, title="condition")
    return ax


# ---------------------------------------------------------------------------
# Clustering plots
# ---------------------------------------------------------------------------

def plot_dendrogram(
    Z: np.ndarray,
    labels: list[str],
    n_clusters: int | None = None,
    label_groups: pd.Series | None = None,
    known_colors: dict | None = None,
    ax: plt.Axes | None = None,
) -> plt.Axes:
    """Dendrogram of a linkage matrix.

    When *n_clusters* is given, branches below the cut producing that many
    clusters are coloured and the cut height is drawn. When *label_groups*
    is given, leaf labels are coloured by group.
    """
    ax = _get_ax(ax, figsize=(12, 5))
    color_threshold = None
    if n_clusters is not None and 1 < n_clusters <= len(labels):
        upper = float(Z[-(n_clusters - 1), 2])
        lower = float(Z[-n_clusters, 2]) if n_clusters < len(labels) else 0.0
        color_threshold = (lower + upper) / 2

    dendrogram(
        Z,
        labels=list(labels),
        ax=ax,
        leaf_rotation=90,
        leaf_font_size=7,
        color_threshold=color_threshold,
        above_threshold_color=COLOR["neutral"],
    )
    if color_threshold is not None:
        ax.axhline(color_threshold, linestyle="--", color=COLOR["danger"], linewidth=1)

    if label_groups is not None:
        groups = label_groups.astype(str)
        colors = color_map(groups, known_colors)
        for tick in ax.get_xticklabels():
            grp = groups.get(tick.get_text())
            if grp is not None:
                tick.set_color(colors[grp])

    ax.set_ylabel("Height")
    return ax


def plot_clustered_heatmap(
    matrix: pd.DataFrame,
    method: str = "complete",
    metric: str = "euclidean",
    row_groups: pd.Series | None = None,
    known_colors: dict | None = None,
    center: bool = True,
    figsize=(10, 10),
) -> plt.Figure:
    """Heatmap of *matrix* with rows and columns ordered by hierarchical clustering.

    Parameters
    ----------
    matrix : pd.DataFrame
        Complete sample-by-protein matrix.
    method, metric : str, optional
        Linkage rule and distance used for both rows and columns.
    row_groups : pd.Series or None, optional
        Group label per row, drawn as a colour strip left of the heatmap.
    center : bool, optional
        Subtract each column's mean so colours show relative abundance.

    Returns
    -------
    matplotlib.figure.Figure
    """
    M = matrix.astype(float)
    if center:
        M = M - M.mean()

    row_Z = linkage(M.to_numpy(), method=method, metric=metric)
    col_Z = linkage(M.to_numpy().T, method=method, metric=metric)
    row_order = dendrogram(row_Z, no_plot=True)["leaves"]
    col_order = dendrogram(col_Z, no_plot=True)["leaves"]
    M = M.iloc[row_order, col_order]

    fig = plt.figure(figsize=figsize)
    gs = fig.add_gridspec(
        2, 4, width_ratios=[2, 0.3, 8, 0.3], height_ratios=[2, 8], wspace=0.02, hspace=0.02
    )

    ax_row = fig.add_subplot(gs[1, 0])
    dendrogram(row_Z, orientation="left", ax=ax_row, no_labels=True,
               color_threshold=0, above_threshold_color=COLOR["neutral"])
    ax_row.invert_yaxis()
    ax_row.axis("off")

    ax_col = fig.add_subplot(gs[0, 2])
    dendrogram(col_Z, ax=ax_col, no_labels=True,
               color_threshold=0, above_threshold_color=COLOR["neutral"])
    ax_col.axis("off")

    ax_strip = fig.add_subplot(gs[1, 1])
    if row_groups is not None:
        groups = row_groups.reindex(M.index).astype(str)
        colors = color_map(groups, known_colors)
        levels = list(colors)
        codes = groups.map({lab: i for i, lab in enumerate(levels)}).to_numpy()[:, np.newaxis]
        ax_strip.imshow(
            codes, aspect="auto",
            cmap=ListedColormap([colors[lab] for lab in levels]),
            vmin=-0.5, vmax=len(levels) - 0.5,
        )
        fig.legend(
            handles=[Patch(color=c, label=lab) for lab, c in colors.items()],
            loc="upper left", frameon=False,
        )
    ax_strip.axis("off")

    ax_heat = fig.add_subplot(gs[1, 2])
    lim = float(np.nanmax(np.abs(M.to_numpy()))) if center else None
    im = ax_heat.imshow(
        M.to_numpy(), aspect="auto",
        cmap=LinearSegmentedColormap.from_list("protviz", DIVERGING),
        vmin=-lim if lim else None, vmax=lim,
    )
    ax_heat.set_yticks(range(len(M.index)))
    ax_heat.set_yticklabels(M.index, fontsize=6)
    ax_heat.yaxis.tick_right()
    ax_heat.set_xticks(range(len(M.columns)))
    ax_heat.set_xticklabels(M.columns, rotation=90, fontsize=6)

    ax_cbar = fig.add_subplot(gs[1, 3])
    fig.colorbar(im, cax=ax_cbar, label="Centred abundance" if center else "Abundance")
    ax_cbar.yaxis.set_label_position("right")
    return fig


def plot_pca_biplot(
    pca_result,
    groups: pd.Series | None = None,
    n_loadings: int = 10,
    known_colors: dict | None = None,
    ax: plt.Axes | None = None,
) -> plt.Axes:
    """PC1/PC2 scores with the *n_loadings* largest loading vectors overlaid."""
    scores = pca_result.scores
    ratio = pca_result.explained_variance_ratio
    ax = plot_scatter(scores, "PC1", "PC2", hue=groups, ax=ax, known_colors=known_colors)

    loadings = pca_result.loadings[["PC1", "PC2"]]
    top = (loadings ** 2).sum(axis=1).sort_values(ascending=False).head(n_loadings).index
    scale = np.abs(scores[["PC1", "PC2"]].to_numpy()).max() / max(
        np.abs(loadings.loc[top].to_numpy()).max(), 1e-12
    )
    for protein in top:
        lx, ly = loadings.loc[protein] * scale * 0.8
        ax.arrow(0, 0, lx, ly, color=COLOR["danger"], alpha=0.7, width=0.002 * scale,
                 length_includes_head=True)
        ax.annotate(str(protein), (lx, ly), fontsize=7, color=COLOR["danger"])

    ax.set_xlabel(f"PC1 ({100 * ratio['PC1']:.1f}%)")
    ax.set_ylabel(f"PC2 ({100 * ratio['PC2']:.1f}%)")
    ax.axhline(0, color="lightgrey", linewidth=0.8, zorder=0)
    ax.axvline(0, color="lightgrey", linewidth=0.8, zorder=0)
    ax.set_title("PCA biplot")
    return ax


# ---------------------------------------------------------------------------
# Comparison plots
# ---------------------------------------------------------------------------

def plot_volcano(
    results: pd.DataFrame,
    label: str,
    alpha: float = 0.05,
    fc_cutoff: float = 0.0,
    n_labels: int = 20,
    ax: plt.Axes | None = None,
) -> plt.Axes:
    """Volcano plot of one contrast from :func:`group_comparison` results.

    Proteins with ``adj_pvalue < alpha`` and ``|log2fc| > fc_cutoff`` are
    coloured as up/down regulated; the *n_labels* most significant are named.
    """
    from adjustText import adjust_text

    res = results[(results["label"] == label) & results["adj_pvalue"].notna()].copy()
    if res.empty:
        raise ValueError(f"No tested proteins for contrast '{label}'")

    res["neglog10"] = -np.log10(np.clip(res["adj_pvalue"].to_numpy(), 1e-300, 1.0))
    sig = (res["adj_pvalue"] < alpha) & (res["log2fc"].abs() > fc_cutoff)
    res["status"] = np.where(sig & (res["log2fc"] > 0), "up", np.where(sig, "down", "ns"))

    ax = _get_ax(ax, figsize=(10, 7))
    for status, name in [("ns", "Not significant"), ("down", "Down"), ("up", "Up")]:
        sub = res[res["status"] == status]
        ax.scatter(
            sub["log2fc"], sub["neglog10"], s=20,
            alpha=0.3 if status == "ns" else 0.85,
            color=REGULATION_COLORS[status], label=f"{name} ({len(sub)})",
        )

    ax.axhline(-np.log10(alpha), linestyle="--", color=COLOR["neutral"], linewidth=1)
    if fc_cutoff > 0:
        for x in (-fc_cutoff, fc_cutoff):
            ax.axvline(x, linestyle="--", color=COLOR["neutral"], linewidth=1)

    top = res[sig].sort_values("adj_pvalue").head(n_labels)
    texts = [
        ax.text(r["log2fc"], r["neglog10"], str(r["protein"]), fontsize=8, fontweight="bold")
        for _, r in top.iterrows()
    ]
    if texts:
        adjust_text(texts, ax=ax)

    ax.set_xlabel(f"log2 fold change ({label})")
    ax.set_ylabel("-log10(adjusted p-value)")
    ax.set_title(f"Volcano plot: {label}")
    ax.legend(frameon=False)
    return ax


def plot_venn(sets: dict[str, set], ax: plt.Axes | None = None, title: str = "") -> plt.Axes:
    """Venn/Euler diagram of two or three named sets."""
    from matplotlib_venn import venn2, venn3

    if len(sets) not in (2, 3):
        raise ValueError(f"A Venn diagram needs 2 or 3 sets, got {len(sets)}; use plot_upset")

    ax = _get_ax(ax, figsize=(7, 7))
    names = list(sets)
    draw = venn2 if len(sets) == 2 else venn3
    colors = get_colors("categorical")[: len(sets)]
    draw([set(sets[n]) for n in names], set_labels=names, set_colors=colors, alpha=0.6, ax=ax)
    ax.set_title(title)
    return ax


def plot_upset(sets: dict[str, set], title: str = "", figsize=(10, 6)) -> plt.Figure:
    """UpSet plot of the intersections between any number of named sets."""
    from upsetplot import UpSet, from_contents

    if not any(sets.values()):
        raise ValueError("All sets are empty; nothing to plot")

    data = from_contents({name: sorted(members) for name, members in sets.items()})
    fig = plt.figure(figsize=figsize)
    axes = UpSet(data, subset_size="count", sort_by="cardinality",
                 facecolor=COLOR["secondary"]).plot(fig=fig)
    bars = axes["intersections"]
    for patch in bars.patches:
        height = float(patch.get_height())
        bars.text(patch.get_x() + patch.get_width() / 2, height, f"{int(round(height))}",
                  ha="center", va="bottom", fontsize=8)
    fig.suptitle(title)
    return fig
