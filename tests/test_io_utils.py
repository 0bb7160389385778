import numpy as np
import pandas as pd
import pytest

from protviz.core.io_utils import load_annotation, load_raw_table, load_sample_matrix


def test_load_raw_table_skyline_aliases(tmp_path):
    df = pd.DataFrame({
        "ProteinName": ["P1", "P1"],
        "PeptideSequence": ["AAK", "AAK"],
        "PrecursorCharge": [2, 2],
        "FragmentIon": ["y4", "y4"],
        "ProductCharge": [1, 1],
        "FileName": ["run1.raw", "run2.raw"],
        "Area": ["100.5", "#N/A"],
    })
    file = tmp_path / "raw.csv"
    df.to_csv(file, index=False)

    raw = load_raw_table(file)
    for col in ["protein", "peptide", "precursor_charge", "fragment_ion", "product_charge", "run", "intensity"]:
        assert col in raw.columns
    assert raw.loc[0, "intensity"] == pytest.approx(100.5)
    assert np.isnan(raw.loc[1, "intensity"])


def test_load_raw_table_tab_separated(tmp_path):
    file = tmp_path / "raw.tsv"
    file.write_text("Protein\tPeptideSequence\tRun\tIntensity\nP1\tAAK\tr1\t5\n")
    raw = load_raw_table(file)
    assert list(raw[["protein", "peptide", "run", "intensity"]].iloc[0]) == ["P1", "AAK", "r1", 5.0]


def test_load_raw_table_missing_column(tmp_path):
    file = tmp_path / "raw.csv"
    pd.DataFrame({"ProteinName": ["P1"], "Run": ["r1"], "Intensity": [1.0]}).to_csv(file, index=False)
    with pytest.raises(ValueError, match="peptide"):
        load_raw_table(file)


def test_load_raw_table_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_raw_table(tmp_path / "nope.csv")


def test_load_annotation(tmp_path):
    file = tmp_path / "annot.csv"
    pd.DataFrame({
        "Run": ["r1", "r2"],
        "Condition": ["A", "B"],
        "BioReplicate": [1, 2],
        "TechReplicate": [1, 1],
    }).to_csv(file, index=False)

    annot = load_annotation(file)
    assert list(annot.columns) == ["run", "condition", "subject", "tech_rep"]
    assert annot["condition"].tolist() == ["A", "B"]


def test_load_sample_matrix(tmp_path):
    file = tmp_path / "matrix.csv"
    file.write_text("sample,PA,PB\nCRC_1,1.0,2.0\nHealthy_1,NA,3.5\n")
    matrix = load_sample_matrix(file)
    assert matrix.index.tolist() == ["CRC_1", "Healthy_1"]
    assert matrix.shape == (2, 2)
    assert matrix.isna().sum().sum() == 1


def test_modified_sequence_identifies_peptide(tmp_path):
    df = pd.DataFrame({
        "ProteinName": ["P1", "P1"],
        "PeptideSequence": ["PEPTIDEK", "PEPTIDEK"],
        "PeptideModifiedSequence": ["PEPTIDEK", "PEPTIDE[+80]K"],
        "FileName": ["r1", "r1"],
        "Area": [100.0, 200.0],
    })
    file = tmp_path / "raw.csv"
    df.to_csv(file, index=False)

    raw = load_raw_table(file)

    assert raw["peptide"].tolist() == ["PEPTIDEK", "PEPTIDE[+80]K"]
    assert "PeptideSequence" in raw.columns
