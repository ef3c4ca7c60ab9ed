"""
Shared fixtures: tiny reference, variant, expression and alignment files.
"""

import sys
from pathlib import Path

import pandas as pd
import pysam
import pytest
import structlog

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


CHR1_LENGTH = 1000
CHR2_LENGTH = 200


def _chromosome_sequence(length: int, offset: int = 0) -> str:
    unit = "ACGTTGCAAGGC"
    seq = (unit * (length // len(unit) + 2))[offset:offset + length]
    return seq


VCF_TEXT = """##fileformat=VCFv4.2
##contig=<ID=chr1,length=1000>
##contig=<ID=chr2,length=200>
##FILTER=<ID=PASS,Description="All filters passed">
##FILTER=<ID=q10,Description="Quality below 10">
##INFO=<ID=DP,Number=1,Type=Integer,Description="Total depth">
##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">
#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\ts1\ts2
chr1\t100\trs1\tA\tG\t50\tPASS\tDP=10\tGT\t0/1\t1/1
chr1\t200\t.\tC\tA\t30\tPASS\t.\tGT\t0|1\t0|0
chr1\t300\t.\tAT\tA\t20\tq10\t.\tGT\t./.\t0/1
chr1\t400\t.\tG\tGTT,T\t40\tPASS\t.\tGT\t1/2\t0/0
chr2\t50\t.\tAC\tGT\t.\t.\t.\tGT\t0/0\t0/1
"""


@pytest.fixture
def logger():
    """A structlog logger for functions that require one."""
    return structlog.get_logger("test")


@pytest.fixture
def fasta_file(tmp_path):
    """A two-chromosome FASTA file."""
    path = tmp_path / "genome.fa"
    lines = []
    for name, length, offset in [("chr1", CHR1_LENGTH, 0), ("chr2", CHR2_LENGTH, 3)]:
        seq = _chromosome_sequence(length, offset)
        lines.append(f">{name}")
        lines.extend(seq[i:i + 60] for i in range(0, len(seq), 60))
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def vcf_file(tmp_path):
    """An uncompressed, unindexed VCF file."""
    path = tmp_path / "calls.vcf"
    path.write_text(VCF_TEXT)
    return path


@pytest.fixture
def indexed_vcf_file(tmp_path):
    """A bgzipped, tabix-indexed copy of the VCF."""
    path = tmp_path / "indexed" / "calls.vcf"
    path.parent.mkdir()
    path.write_text(VCF_TEXT)
    compressed = pysam.tabix_index(str(path), preset="vcf", force=True)
    return Path(compressed)


def _make_read(name, start, cigar, flag=0, mapq=60):
    read = pysam.AlignedSegment()
    read.query_name = name
    read.flag = flag
    read.reference_id = 0
    read.reference_start = start
    read.mapping_quality = mapq
    read.cigarstring = cigar
    read.query_sequence = ("ACGT" * 13)[:50]
    read.query_qualities = pysam.qualitystring_to_array("I" * 50)
    return read


@pytest.fixture
def bam_file(tmp_path):
    """
    A sorted, indexed BAM on chr1.

    Reads (0-based starts): r1 99 50M, r2 119 20M100N30M reverse,
    r3 149 50M MAPQ 5, r4 159 50M secondary, r6 169 50M duplicate,
    r5 499 50M.
    """
    path = tmp_path / "reads.bam"
    header = {
        "HD": {"VN": "1.0", "SO": "coordinate"},
        "SQ": [
            {"SN": "chr1", "LN": CHR1_LENGTH},
            {"SN": "chr2", "LN": CHR2_LENGTH},
        ],
    }
    reads = [
        _make_read("r1", 99, "50M"),
        _make_read("r2", 119, "20M100N30M", flag=16),
        _make_read("r3", 149, "50M", mapq=5),
        _make_read("r4", 159, "50M", flag=256),
        _make_read("r6", 169, "50M", flag=1024),
        _make_read("r5", 499, "50M"),
    ]
    with pysam.AlignmentFile(str(path), "wb", header=header) as out:
        for read in reads:
            out.write(read)
    pysam.index(str(path))
    return path


@pytest.fixture
def unindexed_bam_file(tmp_path):
    """A BAM file without an index."""
    path = tmp_path / "noindex.bam"
    header = {"HD": {"VN": "1.0"}, "SQ": [{"SN": "chr1", "LN": CHR1_LENGTH}]}
    with pysam.AlignmentFile(str(path), "wb", header=header) as out:
        out.write(_make_read("r1", 10, "50M"))
    return path


@pytest.fixture
def expression_files(tmp_path):
    """
    A 3-feature x 6-sample matrix and its phenotype table.

    Phenotype rows are deliberately in a different order than the matrix
    columns.
    """
    samples = ["s1", "s2", "s3", "s4", "s5", "s6"]
    matrix = pd.DataFrame(
        {
            "s1": [1.0, 10.0, 5.0],
            "s2": [2.0, 20.0, 5.0],
            "s3": [3.0, 30.0, 5.0],
            "s4": [4.0, 40.0, 5.0],
            "s5": [5.0, 50.0, 5.0],
            "s6": [6.0, 60.0, 5.0],
        },
        index=pd.Index(["geneA", "geneB", "geneC"], name="feature"),
    )[samples]
    phenotype = pd.DataFrame(
        {
            "condition": ["heat", "control", "heat", "control", "heat", "control"],
            "time": [0, 0, 1, 1, 2, 2],
        },
        index=pd.Index(["s4", "s1", "s5", "s2", "s6", "s3"], name="sample"),
    )
    matrix_path = tmp_path / "matrix.tsv"
    phenotype_path = tmp_path / "phenotype.tsv"
    matrix.to_csv(matrix_path, sep="\t")
    phenotype.to_csv(phenotype_path, sep="\t")
    return matrix_path, phenotype_path
