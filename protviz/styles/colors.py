# Color palette for data visualization across the project

# Primary colors
PRIMARY = "#D97706"  # Amber/Orange
SECONDARY = "#2F6F6D"  # Teal

# Complete Color Palette
PALETTE = {
    # Main distributions / baseline
    "primary":   "#D97706",  # Burnt Orange

    # Control / comparison groups
    "secondary": "#2F6F6D",  # Muted Teal

    # Up-regulated / disease
    "danger":    "#7A1F1F",  # Dark Red

    # Not significant / background points
    "accent":    "#5B3A5D",  # Muted Plum

    # Highlights / significant hits
    "warning":   "#EAB308",  # Mustard Yellow

    # Structural / neutral elements (edges, threshold lines)
    "neutral":   "#7C4A1D",  # Warm Brown
}

# Color lists for categorical data
CATEGORICAL = [
    "#D97706",  # Burnt Orange (primary)
    "#2F6F6D",  # Muted Teal (control/contrast)
    "#5B3A5D",  # Muted Plum (secondary/method)
    "#7A1F1F",  # Dark Red (risk/severity)
    "#EAB308",  # Mustard Yellow (accent)
    "#7C4A1D",  # Warm Brown (neutral/structure)
    "#0891B2",  # Cyan
    "#EC4899",  # Pink
]

# Sequential colors for heatmaps etc
SEQUENTIAL_TEAL = [
    "#E6F2F1",  # very light teal
    "#CFE5E3",
    "#A9CFCC",
    "#7FB6B3",
    "#559B97",
    "#2F6F6D",  # muted teal
]

SEQUENTIAL_ORANGE = [
    "#FEF3E2",  # very light warm
    "#FDE6C8",
    "#FBCF9A",
    "#F7B56D",
    "#F09A3E",
    "#D97706",  # burnt orange
]

# Diverging map for centred abundance heatmaps (low → high)
DIVERGING = SEQUENTIAL_TEAL[::-1] + ["#FFFFFF"] + SEQUENTIAL_ORANGE

# CRC cohort specific
DIAGNOSIS_COLORS = {
    "CRC": "#7A1F1F",       # Dark Red (cancer)
    "Healthy": "#2F6F6D",   # Muted Teal (control)
}

# Volcano plot regulation status
REGULATION_COLORS = {
    "up": "#7A1F1F",
    "down": "#2F6F6D",
    "ns": "#BDBDBD",
}


# Utility function to get colors for a specific context
def get_colors(context="categorical"):
    """
    Get color palette for a specific context.

    Parameters
    ----------
    context : str
        Type of color palette: 'categorical', 'sequential_teal',
        'sequential_orange', 'diverging', 'diagnosis', 'regulation'
        or 'palette'

    Returns
    -------
    list or dict
        Colors for the specified context
    """
    contexts = {
        "categorical": CATEGORICAL,
        "sequential_teal": SEQUENTIAL_TEAL,
        "sequential_orange": SEQUENTIAL_ORANGE,
        "diverging": DIVERGING,
        "diagnosis": DIAGNOSIS_COLORS,
        "regulation": REGULATION_COLORS,
        "palette": PALETTE,
    }
    return contexts.get(context, CATEGORICAL)


def color_map(labels, known=None):
    """
    Assign a color to every distinct label.

    Labels found in *known* keep their fixed color; the rest cycle through
    CATEGORICAL in sorted order, so the mapping is stable between plots.

    Parameters
    ----------
    labels : iterable
        Group labels (conditions, diagnoses, cluster ids).
    known : dict, optional
        Fixed label → color assignments, e.g. DIAGNOSIS_COLORS.

    Returns
    -------
    dict
        Label → hex color
    """
    known = known or {}
    uniq = sorted({str(lab) for lab in labels})
    free = [c for c in CATEGORICAL if c not in known.values()] or CATEGORICAL
    out = {}
    i = 0
    for lab in uniq:
        if lab in known:
            out[lab] = known[lab]
        else:
            out[lab] = free[i % len(free)]
            i += 1
    return out
