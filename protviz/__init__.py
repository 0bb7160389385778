"""
protviz
-------
Visualization recipes for mass-spectrometry proteomics quantification data.

Sub-packages
------------
core
    Ingestion, quantification, group comparison, clustering / dimension
    reduction, caching and plotting helpers.
styles
    Shared color palettes and visual style constants.
"""

__version__ = "0.1.0"

from . import core, styles

__all__ = ["core", "styles", "__version__"]
