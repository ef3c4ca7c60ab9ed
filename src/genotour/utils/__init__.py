"""
Utility modules for the genomic data tour.
"""

from .logging import (
    setup_logging,
    StepLogger,
    ChunkTimer,
    log_file_operation,
    log_error,
)

__all__ = [
    "setup_logging",
    "StepLogger",
    "ChunkTimer",
    "log_file_operation",
    "log_error",
]
