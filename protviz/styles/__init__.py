"""
protviz.styles
--------------
Shared visual style definitions for protviz plots.

Modules
-------
colors
    Project color palette (PALETTE, CATEGORICAL, SEQUENTIAL_TEAL,
    SEQUENTIAL_ORANGE, DIVERGING, DIAGNOSIS_COLORS, REGULATION_COLORS) and
    the :func:`get_colors` / :func:`color_map` helpers.
"""

from .colors import (
    PRIMARY,
    SECONDARY,
    PALETTE,
    CATEGORICAL,
    SEQUENTIAL_TEAL,
    SEQUENTIAL_ORANGE,
    DIVERGING,
    DIAGNOSIS_COLORS,
    REGULATION_COLORS,
    get_colors,
    color_map,
)

__all__ = [
    "PRIMARY",
    "SECONDARY",
    "PALETTE",
    "CATEGORICAL",
    "SEQUENTIAL_TEAL",
    "SEQUENTIAL_ORANGE",
    "DIVERGING",
    "DIAGNOSIS_COLORS",
    "REGULATION_COLORS",
    "get_colors",
    "color_map",
]
