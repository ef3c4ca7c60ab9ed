"""
Core modules for the genomic data tour.
"""

from .tutorial import TutorialDocument, Chunk, RenderError, build_default_tutorial

# Import submodules
from . import reference
from . import variants
from . import expression
from . import alignments
from . import plotting

__all__ = [
    "TutorialDocument",
    "Chunk",
    "RenderError",
    "build_default_tutorial",
    "reference",
    "variants",
    "expression",
    "alignments",
    "plotting",
]
