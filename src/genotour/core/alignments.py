"""
RNA-seq read alignment access using pysam.
"""

from pathlib import Path
from typing import Optional
import numpy as np
import pandas as pd
import pysam
import structlog

from ..models import GenomicWindow, ReadWindowSummary


READ_COLUMNS = [
    "name", "chromosome", "start", "end", "strand",
    "mapping_quality", "cigar", "length", "spliced"
]

# CIGAR operation code for a skipped region (intron)
_CIGAR_REF_SKIP = 3


def open_alignments(bam_path: Path) -> pysam.AlignmentFile:
    """
    Open an indexed BAM file for region queries.

    Raises:
        FileNotFoundError: If the BAM file or its index does not exist
    """
    bam_path = Path(bam_path)
    if not bam_path.exists():
        raise FileNotFoundError(f"BAM file not found: {bam_path}")
    alignment_file = pysam.AlignmentFile(str(bam_path), "rb")
    if not alignment_file.has_index():
        alignment_file.close()
        raise FileNotFoundError(
            f"BAM index not found for {bam_path}. Run 'samtools index {bam_path}' first."
        )
    return alignment_file


def _resolve_contig(alignment_file: pysam.AlignmentFile, name: str) -> str:
    references = list(alignment_file.references)
    if name in references:
        return name
    alternative = name[3:] if name.startswith("chr") else f"chr{name}"
    if alternative in references:
        return alternative
    raise KeyError(
        f"Chromosome '{name}' not found in BAM header. Available: {', '.join(references)}"
    )


def resolve_window(bam_path: Path, region: str) -> GenomicWindow:
    """Parse a region string, taking a bare chromosome's length from the BAM header."""
    if ":" in region:
        return GenomicWindow.from_region(region)
    with open_alignments(bam_path) as alignment_file:
        length = alignment_file.get_reference_length(_resolve_contig(alignment_file, region.strip()))
    return GenomicWindow.from_region(region, length=length)


def _keep_read(
    read: pysam.AlignedSegment,
    min_mapping_quality: int,
    include_secondary: bool
) -> bool:
    if read.is_unmapped or read.is_qcfail or read.is_duplicate:
        return False
    if read.is_secondary and not include_secondary:
        return False
    return read.mapping_quality >= min_mapping_quality


def _is_spliced(read: pysam.AlignedSegment) -> bool:
    return any(op == _CIGAR_REF_SKIP for op, _ in (read.cigartuples or []))


def read_window(
    bam_path: Path,
    window: GenomicWindow,
    min_mapping_quality: int = 0,
    include_secondary: bool = False,
    logger: Optional[structlog.BoundLogger] = None
) -> pd.DataFrame:
    """
    Read the alignments overlapping a scan region.

    Args:
        bam_path: Sorted and indexed BAM file
        window: Scan region
        min_mapping_quality: Reads below this mapping quality are dropped
        include_secondary: Keep secondary alignments
        logger: Logger instance

    Returns:
        DataFrame with one row per kept read. Start is 1-based, end inclusive.
    """
    rows = []
    with open_alignments(bam_path) as alignment_file:
        contig = _resolve_contig(alignment_file, window.chromosome)
        for read in alignment_file.fetch(contig, window.start - 1, window.end):
            if not _keep_read(read, min_mapping_quality, include_secondary):
                continue
            rows.append({
                "name": read.query_name,
                "chromosome": read.reference_name,
                "start": read.reference_start + 1,
                "end": read.reference_end,
                "strand": "-" if read.is_reverse else "+",
                "mapping_quality": read.mapping_quality,
                "cigar": read.cigarstring,
                "length": read.infer_read_length() or 0,
                "spliced": _is_spliced(read),
            })
    if logger is not None:
        logger.info("Reads fetched", bam_file=str(bam_path),
                    region=window.to_region(), reads=len(rows))
    return pd.DataFrame(rows, columns=READ_COLUMNS)


def coverage(
    bam_path: Path,
    window: GenomicWindow,
    min_mapping_quality: int = 0
) -> np.ndarray:
    """
    Per-base read depth across a window.

    Skipped (intronic) and deleted bases do not count towards depth.
    """
    def read_filter(read):
        return _keep_read(read, min_mapping_quality, include_secondary=False)

    with open_alignments(bam_path) as alignment_file:
        contig = _resolve_contig(alignment_file, window.chromosome)
        per_base = alignment_file.count_coverage(
            contig,
            start=window.start - 1,
            stop=window.end,
            quality_threshold=0,
            read_callback=read_filter,
        )
    return np.sum(np.array(per_base, dtype=np.int64), axis=0)


def count_mapped_reads(bam_path: Path, window: GenomicWindow) -> int:
    """Count mapped reads overlapping a window before any read filter is applied."""
    with open_alignments(bam_path) as alignment_file:
        contig = _resolve_contig(alignment_file, window.chromosome)
        return alignment_file.count(
            contig, window.start - 1, window.end,
            read_callback=lambda read: not read.is_unmapped,
        )


def summarize_reads(
    bam_path: Path,
    window: GenomicWindow,
    min_mapping_quality: int = 0,
    logger: Optional[structlog.BoundLogger] = None
) -> ReadWindowSummary:
    """Summarize the reads and depth in a scan region."""
    reads = read_window(bam_path, window, min_mapping_quality, logger=logger)
    depth = coverage(bam_path, window, min_mapping_quality)
    return ReadWindowSummary(
        region=window.to_region(),
        mapped_reads=count_mapped_reads(bam_path, window),
        total_reads=len(reads),
        forward=int((reads["strand"] == "+").sum()),
        reverse=int((reads["strand"] == "-").sum()),
        spliced_reads=int(reads["spliced"].sum()) if not reads.empty else 0,
        mean_mapping_quality=float(reads["mapping_quality"].mean()) if not reads.empty else 0.0,
        mean_read_length=float(reads["length"].mean()) if not reads.empty else 0.0,
        mean_coverage=float(depth.mean()) if depth.size else 0.0,
        max_coverage=int(depth.max()) if depth.size else 0,
    )
