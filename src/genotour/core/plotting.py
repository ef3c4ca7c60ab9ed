"""
Figures for the genomic data tour.
"""

from pathlib import Path
from typing import Optional
import logging
import matplotlib
matplotlib.use('Agg')
# Supress font messages
logging.getLogger('matplotlib.font_manager').setLevel(logging.WARNING)
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
import structlog

from ..models import GenomicWindow, VariantSummary


def _save(fig, out_path: Path, dpi: int) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return out_path


def plot_coverage(
    depth: np.ndarray,
    window: GenomicWindow,
    out_path: Path,
    logger: structlog.BoundLogger,
    title: Optional[str] = None,
    dpi: int = 100
) -> Optional[Path]:
    """Plot per-base read depth across a window."""
    if depth is None or len(depth) == 0:
        logger.warning("Coverage plot could not be created, no depth values",
                       region=window.to_region())
        return None
    logger.info("Creating coverage plot", region=window.to_region(), out_path=str(out_path))
    positions = np.arange(window.start, window.start + len(depth))
    sns.set_theme(style="whitegrid", font_scale=0.9)
    fig, ax = plt.subplots(figsize=(10, 3))
    ax.fill_between(positions, depth, step="mid", color="steelblue", alpha=0.7)
    ax.set_xlim(window.start, window.start + len(depth) - 1)
    ax.set_ylim(bottom=0)
    ax.set_xlabel(f"Position on {window.chromosome}")
    ax.set_ylabel("Read depth")
    ax.set_title(title or f"Coverage {window.to_region()}")
    return _save(fig, out_path, dpi)


def plot_time_course(
    course: pd.DataFrame,
    feature: str,
    out_path: Path,
    logger: structlog.BoundLogger,
    dpi: int = 100
) -> Optional[Path]:
    """Plot a feature's expression over time, one line per condition."""
    if course.empty:
        logger.warning("Time course plot could not be created, no samples",
                       feature=feature)
        return None
    logger.info("Creating time course plot", feature=feature, out_path=str(out_path))
    sns.set_theme(style="whitegrid", font_scale=0.9)
    fig, ax = plt.subplots(figsize=(7, 4))
    sns.lineplot(data=course, x="time", y="expression", hue="condition",
                 marker="o", errorbar=None, ax=ax)
    ax.set_xlabel("Time")
    ax.set_ylabel("Expression")
    ax.set_title(f"Expression of {feature}")
    return _save(fig, out_path, dpi)


def plot_variant_classes(
    summary: VariantSummary,
    out_path: Path,
    logger: structlog.BoundLogger,
    dpi: int = 100
) -> Optional[Path]:
    """Bar chart of alleles per variant class."""
    counts = {k: v for k, v in summary.variant_classes.items() if v > 0}
    if not counts:
        logger.warning("Variant class plot could not be created, no variants",
                       vcf_file=summary.source)
        return None
    logger.info("Creating variant class plot", vcf_file=summary.source, out_path=str(out_path))
    sns.set_theme(style="whitegrid", font_scale=0.9)
    fig, ax = plt.subplots(figsize=(6, 4))
    sns.barplot(x=list(counts.keys()), y=list(counts.values()), color="steelblue", ax=ax)
    ax.set_xlabel("Variant class")
    ax.set_ylabel("Alleles")
    ax.set_title("Variant classes")
    return _save(fig, out_path, dpi)
