"""
genotour

A literate tour of genomic data: reference sequence, variant calls,
expression time series and RNA-seq read alignments.
"""

__version__ = "1.0.0"
__author__ = "Bioinformatics Team"
__email__ = "team@example.com"

# Lazy imports to avoid loading pysam/matplotlib on package import
def get_tutorial_document():
    """Get the TutorialDocument class."""
    from .core.tutorial import TutorialDocument
    return TutorialDocument

def get_tour_config():
    """Get the TourConfig class."""
    from .config.settings import TourConfig
    return TourConfig

def get_genomic_window():
    """Get the GenomicWindow class."""
    from .models import GenomicWindow
    return GenomicWindow

__all__ = ["get_tutorial_document", "get_tour_config", "get_genomic_window"]
