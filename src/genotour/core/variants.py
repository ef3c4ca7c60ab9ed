"""
VCF parsing and summaries using pysam.
"""

from collections import Counter
from pathlib import Path
from typing import Iterator, Optional
import numpy as np
import pandas as pd
import pysam
import structlog

from ..models import GenomicWindow, VariantSummary


VARIANT_CLASSES = ["SNV", "MNV", "insertion", "deletion", "other"]

_TRANSITIONS = {("A", "G"), ("G", "A"), ("C", "T"), ("T", "C")}

VARIANT_COLUMNS = [
    "chromosome", "position", "id", "ref", "alt", "qual", "filter", "variant_class"
]


def open_vcf(vcf_path: Path) -> pysam.VariantFile:
    """
    Open a VCF/BCF file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    vcf_path = Path(vcf_path)
    if not vcf_path.exists():
        raise FileNotFoundError(f"VCF file not found: {vcf_path}")
    return pysam.VariantFile(str(vcf_path))


def classify_variant(ref: str, alt: Optional[str]) -> str:
    """Classify a REF/ALT allele pair."""
    if not ref or not alt or alt in (".", "*"):
        return "other"
    ref = ref.upper()
    alt = alt.upper()
    # Symbolic and breakend alleles
    if alt.startswith("<") or "[" in alt or "]" in alt:
        return "other"
    if len(ref) == 1 and len(alt) == 1:
        return "SNV"
    if len(ref) == len(alt):
        return "MNV"
    if ref[0] != alt[0]:
        return "other"
    if len(alt) > len(ref):
        return "insertion"
    return "deletion"


def is_transition(ref: str, alt: str) -> bool:
    """Return True for A<->G and C<->T substitutions."""
    return (ref.upper(), alt.upper()) in _TRANSITIONS


def iter_records(
    variant_file: pysam.VariantFile,
    window: Optional[GenomicWindow] = None
) -> Iterator[pysam.VariantRecord]:
    """
    Iterate over VCF records, optionally restricted to a window.

    Indexed files are queried through the index; unindexed files are
    streamed and filtered by overlap.
    """
    if window is None:
        yield from variant_file.fetch() if variant_file.index is not None else variant_file
        return

    if variant_file.index is not None:
        try:
            records = variant_file.fetch(window.chromosome, window.start - 1, window.end)
        except ValueError:
            # Contig absent from the index
            return
        yield from records
        return

    for record in variant_file:
        if record.chrom != window.chromosome:
            continue
        # record.start/stop are 0-based half-open
        if record.start < window.end and record.stop > window.start - 1:
            yield record


def read_variants(
    vcf_path: Path,
    window: Optional[GenomicWindow] = None,
    logger: Optional[structlog.BoundLogger] = None
) -> pd.DataFrame:
    """
    Read VCF records into a DataFrame, one row per ALT allele.

    Args:
        vcf_path: VCF/BCF file
        window: Optional genomic window to restrict the records to
        logger: Logger instance

    Returns:
        DataFrame with chromosome, position, id, ref, alt, qual, filter and
        variant_class columns
    """
    rows = []
    with open_vcf(vcf_path) as variant_file:
        for record in iter_records(variant_file, window):
            filters = list(record.filter.keys())
            alts = record.alts or (None,)
            for alt in alts:
                rows.append({
                    "chromosome": record.chrom,
                    "position": record.pos,
                    "id": record.id,
                    "ref": record.ref,
                    "alt": alt,
                    "qual": record.qual,
                    "filter": ";".join(filters) if filters else ".",
                    "variant_class": classify_variant(record.ref, alt),
                })
    if logger is not None:
        logger.info("Variants read", vcf_file=str(vcf_path),
                    region=window.to_region() if window else None,
                    alleles=len(rows))
    return pd.DataFrame(rows, columns=VARIANT_COLUMNS)


def summarize_vcf(
    vcf_path: Path,
    window: Optional[GenomicWindow] = None,
    logger: Optional[structlog.BoundLogger] = None
) -> VariantSummary:
    """Summarize the records of a VCF file."""
    per_chrom: Counter = Counter()
    classes: Counter = Counter({name: 0 for name in VARIANT_CLASSES})
    quals = []
    total = 0
    passed = 0
    transitions = 0
    transversions = 0

    with open_vcf(vcf_path) as variant_file:
        samples = list(variant_file.header.samples)
        for record in iter_records(variant_file, window):
            total += 1
            per_chrom[record.chrom] += 1
            if list(record.filter.keys()) == ["PASS"]:
                passed += 1
            if record.qual is not None:
                quals.append(record.qual)
            for alt in record.alts or (None,):
                variant_class = classify_variant(record.ref, alt)
                classes[variant_class] += 1
                if variant_class == "SNV":
                    if is_transition(record.ref, alt):
                        transitions += 1
                    else:
                        transversions += 1

    summary = VariantSummary(
        source=str(vcf_path),
        region=window.to_region() if window else None,
        samples=samples,
        total_records=total,
        records_per_chromosome=dict(per_chrom),
        variant_classes=dict(classes),
        pass_filter=passed,
        mean_qual=float(np.mean(quals)) if quals else None,
        min_qual=float(min(quals)) if quals else None,
        max_qual=float(max(quals)) if quals else None,
        transitions=transitions,
        transversions=transversions,
    )
    if logger is not None:
        logger.info("VCF summarized", vcf_file=str(vcf_path),
                    total_records=total, samples=len(samples))
    return summary


def _format_genotype(sample_record) -> str:
    alleles = sample_record.get("GT")
    if alleles is None:
        return "."
    separator = "|" if sample_record.phased else "/"
    return separator.join("." if a is None else str(a) for a in alleles)


def genotype_table(
    vcf_path: Path,
    window: Optional[GenomicWindow] = None
) -> pd.DataFrame:
    """
    Build a variants x samples table of genotype strings.

    Rows are labelled ``chrom:pos``; sites-only files give an empty
    column set.
    """
    labels = []
    rows = []
    with open_vcf(vcf_path) as variant_file:
        samples = list(variant_file.header.samples)
        for record in iter_records(variant_file, window):
            labels.append(f"{record.chrom}:{record.pos}")
            rows.append([_format_genotype(record.samples[s]) for s in samples])
    return pd.DataFrame(rows, index=labels, columns=samples)
