"""
Reference genome sequence access using pyfaidx.
"""

from collections import Counter
from pathlib import Path
from typing import Optional
import pandas as pd
import structlog
from pyfaidx import Fasta

from ..models import GenomicWindow, SequenceSummary


def open_reference(fasta_path: Path, logger: Optional[structlog.BoundLogger] = None) -> Fasta:
    """
    Open an indexed FASTA file.

    The ``.fai`` index is built next to the FASTA when it does not exist.

    Raises:
        FileNotFoundError: If the FASTA file does not exist
    """
    fasta_path = Path(fasta_path)
    if not fasta_path.exists():
        raise FileNotFoundError(f"Reference FASTA not found: {fasta_path}")
    if logger is not None:
        logger.info("Opening reference genome", fasta=str(fasta_path),
                    indexed=Path(str(fasta_path) + ".fai").exists())
    return Fasta(str(fasta_path))


def list_chromosomes(reference: Fasta) -> pd.DataFrame:
    """Return chromosome names and lengths in FASTA order."""
    rows = [
        {"chromosome": name, "length": len(reference[name])}
        for name in reference.keys()
    ]
    return pd.DataFrame(rows, columns=["chromosome", "length"])


def resolve_chromosome(reference: Fasta, name: str) -> str:
    """
    Match a chromosome name against the reference.

    Exact matches win; otherwise the name is retried with the ``chr``
    prefix added or removed.
    """
    available = list(reference.keys())
    if name in available:
        return name
    alternative = name[3:] if name.startswith("chr") else f"chr{name}"
    if alternative in available:
        return alternative
    raise KeyError(
        f"Chromosome '{name}' not found in reference. Available: {', '.join(available)}"
    )


def resolve_window(reference: Fasta, region: str) -> GenomicWindow:
    """Parse a region string; a bare chromosome name spans the whole chromosome."""
    if ":" in region:
        return GenomicWindow.from_region(region)
    chrom = resolve_chromosome(reference, region.strip())
    return GenomicWindow.from_region(region, length=len(reference[chrom]))


def get_chromosome(reference: Fasta, name: str) -> str:
    """Return the full sequence of a named chromosome."""
    chrom = resolve_chromosome(reference, name)
    return reference[chrom][:].seq


def get_window(reference: Fasta, window: GenomicWindow) -> str:
    """
    Return the sequence of a genomic window (1-based, inclusive).

    Raises:
        KeyError: If the chromosome is not in the reference
        ValueError: If the window extends past the chromosome end
    """
    chrom = resolve_chromosome(reference, window.chromosome)
    length = len(reference[chrom])
    if window.end > length:
        raise ValueError(
            f"Window {window} extends past the end of {chrom} (length {length})"
        )
    return reference[chrom][window.start - 1:window.end].seq


def summarize_sequence(
    sequence: str,
    chromosome: str,
    start: int = 1,
    preview_length: int = 60
) -> SequenceSummary:
    """Summarize base composition of a sequence."""
    counts = Counter(sequence.upper())
    base_counts = {base: counts.get(base, 0) for base in "ACGTN"}
    called = base_counts["A"] + base_counts["C"] + base_counts["G"] + base_counts["T"]
    gc = base_counts["G"] + base_counts["C"]
    gc_content = (gc / called) * 100.0 if called > 0 else 0.0
    return SequenceSummary(
        chromosome=chromosome,
        start=start,
        end=start + len(sequence) - 1 if sequence else start,
        length=len(sequence),
        gc_content=gc_content,
        base_counts=base_counts,
        preview=sequence[:preview_length],
    )


def summarize_window(
    fasta_path: Path,
    window: GenomicWindow,
    logger: Optional[structlog.BoundLogger] = None,
    preview_length: int = 60
) -> SequenceSummary:
    """Open the reference, fetch a window and summarize it."""
    with open_reference(fasta_path, logger) as reference:
        sequence = get_window(reference, window)
        chrom = resolve_chromosome(reference, window.chromosome)
    if logger is not None:
        logger.info("Reference window fetched", region=window.to_region(), length=len(sequence))
    return summarize_sequence(sequence, chrom, window.start, preview_length)
