"""
Data models for the values displayed by the genomic data tour.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


_REGION_PATTERN = re.compile(r"^(?P<chrom>[^:\s]+)(?::(?P<start>[\d,]+)-(?P<end>[\d,]+))?$")


class GenomicWindow(BaseModel):
    """A genomic interval with 1-based, inclusive coordinates."""

    chromosome: str = Field(description="Chromosome name")
    start: int = Field(description="Start position (1-based, inclusive)")
    end: int = Field(description="End position (1-based, inclusive)")

    @field_validator('chromosome')
    @classmethod
    def validate_chromosome(cls, v):
        """Validate that the chromosome name is not empty."""
        if not v or not v.strip():
            raise ValueError("Chromosome name must not be empty")
        return v.strip()

    @field_validator('start')
    @classmethod
    def validate_start(cls, v):
        """Validate that the start position is 1-based."""
        if v < 1:
            raise ValueError("Window start must be >= 1")
        return v

    @model_validator(mode='after')
    def validate_end_after_start(self):
        """Validate that end position is not before start position."""
        if self.end < self.start:
            raise ValueError("Window end must be >= window start")
        return self

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def to_region(self) -> str:
        """Return the samtools-style region string."""
        return f"{self.chromosome}:{self.start}-{self.end}"

    @classmethod
    def from_region(cls, region: str, length: Optional[int] = None) -> "GenomicWindow":
        """
        Parse a region string of the form ``chrom:start-end`` or ``chrom``.

        A bare chromosome name spans the whole chromosome, so its length
        must be supplied.
        """
        match = _REGION_PATTERN.match(region.strip())
        if match is None:
            raise ValueError(f"Invalid region: '{region}'")
        chrom = match.group("chrom")
        if match.group("start") is None:
            if length is None:
                raise ValueError(
                    f"Region '{region}' has no coordinates and no chromosome length was given"
                )
            return cls(chromosome=chrom, start=1, end=length)
        return cls(
            chromosome=chrom,
            start=int(match.group("start").replace(",", "")),
            end=int(match.group("end").replace(",", "")),
        )

    def __str__(self) -> str:
        return self.to_region()


class SequenceSummary(BaseModel):
    """Summary of a stretch of reference sequence."""

    chromosome: str = Field(description="Chromosome name")
    start: int = Field(description="Start position (1-based)")
    end: int = Field(description="End position (1-based)")
    length: int = Field(description="Sequence length")
    gc_content: float = Field(description="GC content percentage over non-N bases")
    base_counts: Dict[str, int] = Field(default_factory=dict, description="Counts of A, C, G, T and N")
    preview: str = Field(default="", description="First bases of the sequence")

    @field_validator('gc_content')
    @classmethod
    def validate_gc_content(cls, v):
        """Validate that GC content is a percentage."""
        if not 0 <= v <= 100:
            raise ValueError("GC content must be between 0 and 100")
        return v


class VariantSummary(BaseModel):
    """Summary of the records in a VCF file."""

    source: str = Field(description="VCF file the summary was computed from")
    region: Optional[str] = Field(default=None, description="Region the summary was restricted to")
    samples: List[str] = Field(default_factory=list, description="Sample names in the VCF header")
    total_records: int = Field(description="Number of VCF records")
    records_per_chromosome: Dict[str, int] = Field(default_factory=dict)
    variant_classes: Dict[str, int] = Field(default_factory=dict, description="Alleles per variant class")
    pass_filter: int = Field(default=0, description="Records with FILTER PASS")
    mean_qual: Optional[float] = Field(default=None)
    min_qual: Optional[float] = Field(default=None)
    max_qual: Optional[float] = Field(default=None)
    transitions: int = Field(default=0)
    transversions: int = Field(default=0)

    @field_validator('total_records', 'pass_filter', 'transitions', 'transversions')
    @classmethod
    def validate_counts(cls, v):
        """Validate that counts are non-negative."""
        if v < 0:
            raise ValueError("Counts must be non-negative")
        return v

    @computed_field
    @property
    def ti_tv_ratio(self) -> Optional[float]:
        if self.transversions == 0:
            return None
        return self.transitions / self.transversions


class ExpressionSummary(BaseModel):
    """Summary of an expression experiment."""

    n_features: int = Field(description="Number of features (genes or array spots)")
    n_samples: int = Field(description="Number of samples")
    conditions: List[str] = Field(default_factory=list)
    time_points: List[float] = Field(default_factory=list)
    samples_per_condition: Dict[str, int] = Field(default_factory=dict)


class ReadWindowSummary(BaseModel):
    """Summary of aligned reads overlapping a genomic window."""

    region: str = Field(description="Scan region")
    mapped_reads: int = Field(default=0, description="Mapped reads overlapping the window, before filtering")
    total_reads: int = Field(description="Reads kept in the window")
    forward: int = Field(default=0)
    reverse: int = Field(default=0)
    spliced_reads: int = Field(default=0, description="Reads whose CIGAR contains N")
    mean_mapping_quality: float = Field(default=0.0)
    mean_read_length: float = Field(default=0.0)
    mean_coverage: float = Field(default=0.0)
    max_coverage: int = Field(default=0)

    @field_validator('mapped_reads', 'total_reads', 'forward', 'reverse', 'spliced_reads', 'max_coverage')
    @classmethod
    def validate_read_counts(cls, v):
        """Validate that read counts are non-negative."""
        if v < 0:
            raise ValueError("Read counts must be non-negative")
        return v


class ChunkResult(BaseModel):
    """Outcome of one executed tutorial chunk."""

    name: str
    status: str = Field(default="success")
    output: str = Field(default="")
    figures: List[Path] = Field(default_factory=list)
    duration_seconds: float = Field(default=0.0)
    error: Optional[str] = Field(default=None)

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        """Validate that the status is known."""
        if v not in ['success', 'error']:
            raise ValueError("Chunk status must be 'success' or 'error'")
        return v

    def to_dict(self) -> Dict[str, Union[str, float, list, None]]:
        return self.model_dump(mode="json")
