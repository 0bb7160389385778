"""
io_utils.py
-----------
Readers for the flat-file inputs of the protviz pipeline.

Three inputs are supported:
  - the raw measurement table exported by the acquisition software
    (one row per feature and run, Skyline/MSstats column names accepted)
  - the annotation table mapping each run to condition / subject metadata
  - a sample-by-protein abundance matrix (e.g. the CRC cohort)

All readers normalise column names to the lower-case canonical names used
throughout :mod:`protviz.core`.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Column conventions
# ---------------------------------------------------------------------------

RAW_ALIASES = {
    "ProteinName": "protein",
    "Protein": "protein",
    "PeptideModifiedSequence": "peptide",
    "PeptideSequence": "peptide",
    "PrecursorCharge": "precursor_charge",
    "FragmentIon": "fragment_ion",
    "ProductCharge": "product_charge",
    "IsotopeLabelType": "isotope_label",
    "FileName": "run",
    "Run": "run",
    "Area": "intensity",
    "Intensity": "intensity",
}

ANNOTATION_ALIASES = {
    "FileName": "run",
    "Run": "run",
    "Condition": "condition",
    "BioReplicate": "subject",
    "Subject": "subject",
    "TechReplicate": "tech_rep",
}

RAW_REQUIRED = ["protein", "peptide", "run", "intensity"]
ANNOTATION_REQUIRED = ["run", "condition", "subject"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_delimited(path: Path) -> pd.DataFrame:
    """Read a comma- or tab-separated file, choosing the separator by extension."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input table not found: {path}")
    sep = "\t" if path.suffix.lower() in {".tsv", ".txt"} else ","
    return pd.read_csv(path, sep=sep)


def standardize_columns(
    df: pd.DataFrame, aliases: dict[str, str], required: list[str], what: str
) -> pd.DataFrame:
    """Rename known aliases to canonical names and check required columns.

    Columns already in canonical form are left alone. When two aliases map to
    the same canonical name (e.g. ``FileName`` and ``Run``), the first one
    present in *aliases* wins and the other is kept under its original name.

    Raises
    ------
    ValueError
        If any of *required* is absent after renaming.
    """
    rename: dict[str, str] = {}
    taken = set(df.columns)
    for src, dst in aliases.items():
        if src in df.columns and dst not in taken:
            rename[src] = dst
            taken.add(dst)
    out = df.rename(columns=rename)

    missing = [c for c in required if c not in out.columns]
    if missing:
        raise ValueError(
            f"{what} is missing required column(s) {missing}. "
            f"Columns found: {list(df.columns)}"
        )
    return out


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

def load_raw_table(path: str | Path) -> pd.DataFrame:
    """Load the raw feature-level measurement table.

    Parameters
    ----------
    path : str or Path
        CSV/TSV file with one row per (feature, run).

    Returns
    -------
    pd.DataFrame
        Table with at least the columns ``protein``, ``peptide``, ``run`` and
        ``intensity``; ``intensity`` is coerced to float.
    """
    logger.info("Loading raw measurements from %s", path)
    raw = standardize_columns(_read_delimited(Path(path)), RAW_ALIASES, RAW_REQUIRED, "Raw table")
    raw["intensity"] = pd.to_numeric(raw["intensity"], errors="coerce")
    raw["run"] = raw["run"].astype(str)
    logger.info(
        "Raw table: %d rows, %d proteins, %d runs",
        len(raw), raw["protein"].nunique(), raw["run"].nunique(),
    )
    return raw


def load_annotation(path: str | Path) -> pd.DataFrame:
    """Load the run annotation table (run → condition / subject / tech_rep)."""
    logger.info("Loading annotation from %s", path)
    annot = standardize_columns(
        _read_delimited(Path(path)), ANNOTATION_ALIASES, ANNOTATION_REQUIRED, "Annotation table"
    )
    annot["run"] = annot["run"].astype(str)
    annot["condition"] = annot["condition"].astype(str)
    logger.info(
        "Annotation: %d runs, conditions %s",
        len(annot), sorted(annot["condition"].unique()),
    )
    return annot


def load_sample_matrix(path: str | Path) -> pd.DataFrame:
    """Load a sample-by-protein abundance matrix.

    The first column holds the sample names and becomes the index; every
    other column is a protein. Non-numeric cells are coerced to NaN.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sample matrix not found: {path}")
    logger.info("Loading sample matrix from %s", path)
    sep = "\t" if path.suffix.lower() in {".tsv", ".txt"} else ","
    matrix = pd.read_csv(path, sep=sep, index_col=0)
    matrix.index = matrix.index.astype(str)
    matrix = matrix.apply(pd.to_numeric, errors="coerce")
    logger.info(
        "Sample matrix: %d samples x %d proteins, %d missing values",
        matrix.shape[0], matrix.shape[1], int(matrix.isna().sum().sum()),
    )
    return matrix
