import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

CONDITIONS = ["Control", "TreatA", "TreatB"]
PROTEIN_FEATURES = {"P1": 3, "P2": 3, "P3": 4, "P4": 2, "P5": 3, "P6": 1}
EFFECTS = {"P1": {"TreatA": 3.0}, "P2": {"TreatB": -2.0}}


@pytest.fixture
def annotation():
    rows = []
    for cond in CONDITIONS:
        for subj in range(1, 4):
            for rep in (1, 2):
                rows.append({
                    "run": f"{cond}_S{subj}_{rep}",
                    "condition": cond,
                    "subject": f"{cond}{subj}",
                })
    return pd.DataFrame(rows)


@pytest.fixture
def raw_table(annotation):
    rng = np.random.default_rng(0)
    rows = []
    for _, run in annotation.iterrows():
        run_shift = rng.normal(0, 0.3)
        for prot, n_feat in PROTEIN_FEATURES.items():
            base = 15 + int(prot[1])
            eff = EFFECTS.get(prot, {}).get(run["condition"], 0.0)
            for f in range(n_feat):
                log2 = base + 0.5 * f + eff + run_shift + rng.normal(0, 0.1)
                rows.append({
                    "protein": prot,
                    "peptide": f"{prot}PEP{f}",
                    "precursor_charge": 2,
                    "run": run["run"],
                    "intensity": 2 ** log2,
                })
    raw = pd.DataFrame(rows)
    # one censored measurement: P1, first feature, first run
    raw.loc[0, "intensity"] = 0.0
    return raw


@pytest.fixture
def processed(raw_table, annotation):
    from protviz.core.quant_utils import process_data
    return process_data(raw_table, annotation)


@pytest.fixture
def sample_matrix():
    """12 samples x 20 proteins, two well separated diagnosis groups, a few NaNs."""
    rng = np.random.default_rng(1)
    crc = rng.normal(0, 1, size=(6, 20))
    crc[:, :5] += 6.0
    healthy = rng.normal(0, 1, size=(6, 20))
    index = [f"CRC_{i}" for i in range(1, 7)] + [f"Healthy_{i}" for i in range(1, 7)]
    columns = [f"PROT{j:02d}" for j in range(20)]
    matrix = pd.DataFrame(np.vstack([crc, healthy]), index=index, columns=columns)
    matrix.iloc[0, 7] = np.nan
    matrix.iloc[8, 12] = np.nan
    matrix.iloc[11, 3] = np.nan
    return matrix
