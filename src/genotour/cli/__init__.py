"""
Command-line interface for the genomic data tour.
"""

from .main import cli, main

__all__ = ["cli", "main"]
