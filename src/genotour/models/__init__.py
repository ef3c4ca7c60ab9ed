"""
Data models for the genomic data tour.
"""

from .summaries import (
    GenomicWindow,
    SequenceSummary,
    VariantSummary,
    ExpressionSummary,
    ReadWindowSummary,
    ChunkResult,
)

__all__ = [
    "GenomicWindow",
    "SequenceSummary",
    "VariantSummary",
    "ExpressionSummary",
    "ReadWindowSummary",
    "ChunkResult",
]
