"""
The tutorial document: prose interleaved with executable chunks, run in
order against one shared session and rendered to Markdown.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
import numpy as np
import pandas as pd
import structlog
from pydantic import BaseModel

from ..config.settings import TourConfig
from ..models import ChunkResult, GenomicWindow
from ..utils import ChunkTimer, StepLogger, log_error, log_file_operation
from . import alignments, expression, plotting, reference, variants


FIGURE_SUFFIXES = {".png", ".svg", ".pdf", ".jpg", ".jpeg"}

MAX_TABLE_ROWS = 20


class RenderError(RuntimeError):
    """A chunk failed while rendering the document."""

    def __init__(self, chunk_name: str, cause: Exception):
        self.chunk_name = chunk_name
        self.cause = cause
        super().__init__(f"Chunk '{chunk_name}' failed: {type(cause).__name__}: {cause}")


@dataclass
class Chunk:
    """One executable step of the tutorial."""

    name: str
    prose: str
    run: Callable[[Dict[str, Any]], Any]
    echo: str = ""


def format_value(value: Any) -> Tuple[str, List[Path]]:
    """
    Turn a chunk's return value into display text and figure paths.

    Lists and tuples are formatted item by item.
    """
    if value is None:
        return "", []
    if isinstance(value, Path) and value.suffix.lower() in FIGURE_SUFFIXES:
        return "", [value]
    if isinstance(value, (list, tuple)):
        texts = []
        figures = []
        for item in value:
            text, item_figures = format_value(item)
            if text:
                texts.append(text)
            figures.extend(item_figures)
        return "\n\n".join(texts), figures
    if isinstance(value, pd.DataFrame):
        if value.empty:
            return f"<empty table; columns: {', '.join(map(str, value.columns))}>", []
        return value.to_string(max_rows=MAX_TABLE_ROWS), []
    if isinstance(value, pd.Series):
        return value.to_string(max_rows=MAX_TABLE_ROWS), []
    if isinstance(value, np.ndarray):
        return np.array2string(value, threshold=MAX_TABLE_ROWS * 5), []
    if isinstance(value, BaseModel):
        lines = []
        for key, field_value in value.model_dump().items():
            lines.append(f"{key}: {field_value}")
        return "\n".join(lines), []
    return str(value), []


class TutorialDocument:
    """A literate document made of prose blocks and executable chunks."""

    def __init__(
        self,
        title: str,
        output_dir: Path,
        logger: structlog.BoundLogger,
        intro: str = "",
        chunks: Optional[List[Chunk]] = None,
        stop_on_error: bool = True
    ):
        """
        Initialize the document.

        Args:
            title: Document title
            output_dir: Directory the document and its figures are written to
            logger: Structured logger instance
            intro: Prose placed before the first chunk
            chunks: Initial chunks, in execution order
            stop_on_error: Abort on the first failing chunk
        """
        self.title = title
        self.output_dir = Path(output_dir)
        self.logger = logger
        self.intro = intro
        self.chunks: List[Chunk] = list(chunks or [])
        self.stop_on_error = stop_on_error
        self.session: Dict[str, Any] = {}
        self.results: List[ChunkResult] = []
        self.timer = ChunkTimer(logger)

    def add_chunk(self, name: str, prose: str, run: Callable[[Dict[str, Any]], Any], echo: str = "") -> Chunk:
        """Append a chunk and return it."""
        if any(c.name == name for c in self.chunks):
            raise ValueError(f"Duplicate chunk name: {name}")
        chunk = Chunk(name=name, prose=prose, run=run, echo=echo)
        self.chunks.append(chunk)
        return chunk

    def get_figure_dir(self) -> Path:
        return self.output_dir / "figures"

    def execute(self) -> List[ChunkResult]:
        """
        Run every chunk in order against the shared session.

        Raises:
            RenderError: If a chunk fails and stop_on_error is set
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.get_figure_dir().mkdir(parents=True, exist_ok=True)
        self.session = {"figure_dir": self.get_figure_dir()}
        self.results = []

        with StepLogger(self.logger, "execute_tutorial", title=self.title) as plog:
            plog.add_context(chunks=len(self.chunks))
            try:
                for i, chunk in enumerate(self.chunks):
                    plog.log_progress(f"Running chunk {i+1}/{len(self.chunks)}", chunk=chunk.name)
                    self.results.append(self._run_chunk(chunk))
            finally:
                self._close_session()
            self.timer.log_memory_usage(title=self.title)

        return self.results

    def _close_session(self) -> None:
        """Close and drop the file handles chunks left in the session."""
        for key in [k for k, v in self.session.items() if callable(getattr(v, "close", None))]:
            self.session.pop(key).close()
            self.logger.debug("Closed session handle", key=key)

    def _run_chunk(self, chunk: Chunk) -> ChunkResult:
        self.timer.start(chunk.name)
        try:
            value = chunk.run(self.session)
            text, figures = format_value(value)
        except Exception as e:
            duration = self.timer.stop(chunk.name, status="error")
            log_error(self.logger, e, chunk=chunk.name)
            if self.stop_on_error:
                raise RenderError(chunk.name, e) from e
            return ChunkResult(
                name=chunk.name,
                status="error",
                duration_seconds=duration,
                error=f"{type(e).__name__}: {e}",
            )
        duration = self.timer.stop(chunk.name)
        return ChunkResult(
            name=chunk.name,
            output=text,
            figures=figures,
            duration_seconds=duration,
        )

    def to_markdown(self, base_dir: Optional[Path] = None) -> str:
        """Render executed results to Markdown text."""
        if len(self.results) != len(self.chunks):
            raise RuntimeError("Document must be executed before rendering")
        base_dir = Path(base_dir) if base_dir is not None else self.output_dir

        parts = [f"# {self.title}", ""]
        if self.intro:
            parts.extend([self.intro.strip(), ""])
        for chunk, result in zip(self.chunks, self.results):
            if chunk.prose:
                parts.extend([chunk.prose.strip(), ""])
            if chunk.echo:
                parts.extend(["```python", chunk.echo.strip(), "```", ""])
            if result.status == "error":
                parts.extend(["```", f"## Error in chunk '{chunk.name}': {result.error}", "```", ""])
                continue
            if result.output:
                parts.extend(["```", result.output.rstrip(), "```", ""])
            for figure in result.figures:
                relative = Path(os.path.relpath(Path(figure).resolve(), base_dir.resolve()))
                parts.extend([f"![{chunk.name}]({relative.as_posix()})", ""])
        return "\n".join(parts).rstrip() + "\n"

    def render(self, path: Optional[Path] = None) -> Path:
        """
        Execute the document (if needed) and write it as Markdown.

        Returns:
            Path to the rendered document
        """
        if len(self.results) != len(self.chunks):
            self.execute()
        path = Path(path) if path is not None else self.output_dir / "tutorial.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_markdown(base_dir=path.parent))
        log_file_operation(self.logger, "rendered", path, chunks=len(self.chunks))
        return path


INTRO = """
This document walks through loading and displaying four kinds of
pre-existing genomic data: a reference genome, a set of variant calls,
a gene-expression time series and RNA-seq read alignments. Every step is
a single call into an established library; the point is to see what the
data look like once loaded.
"""


def _reference_chunks(config: TourConfig, window: GenomicWindow) -> List[Chunk]:
    fasta = config.reference_fasta

    def show_chromosomes(session):
        session["reference"] = reference.open_reference(fasta)
        return reference.list_chromosomes(session["reference"])

    def show_window(session):
        sequence = reference.get_window(session["reference"], window)
        return reference.summarize_sequence(sequence, window.chromosome, window.start)

    return [
        Chunk(
            name="reference-chromosomes",
            prose="## Reference genome\n\nAn indexed FASTA file gives random access "
                  "to every chromosome. We start by listing the sequences it holds.",
            echo=f'reference = open_reference("{fasta.name}")\nlist_chromosomes(reference)',
            run=show_chromosomes,
        ),
        Chunk(
            name="reference-window",
            prose=f"A window of a chromosome is a slice of its sequence. Here is "
                  f"`{window.to_region()}` with its base composition.",
            echo=f'sequence = get_window(reference, GenomicWindow.from_region("{window.to_region()}"))\n'
                 f'summarize_sequence(sequence, "{window.chromosome}", {window.start})',
            run=show_window,
        ),
    ]


def _variant_chunks(config: TourConfig, window: GenomicWindow, logger: structlog.BoundLogger) -> List[Chunk]:
    vcf = config.vcf_file

    def show_summary(session):
        session["vcf_summary"] = variants.summarize_vcf(vcf)
        return session["vcf_summary"]

    def show_records(session):
        return variants.read_variants(vcf, window)

    def show_genotypes(session):
        return variants.genotype_table(vcf, window)

    def show_classes(session):
        return plotting.plot_variant_classes(
            session["vcf_summary"], session["figure_dir"] / "variant_classes.png",
            logger, dpi=config.figure_dpi
        )

    return [
        Chunk(
            name="vcf-summary",
            prose="## Variant calls\n\nA VCF file lists sequence variants relative "
                  "to the reference. A summary counts records, variant classes and "
                  "the transition/transversion balance.",
            echo=f'summarize_vcf("{vcf.name}")',
            run=show_summary,
        ),
        Chunk(
            name="vcf-records",
            prose=f"The records falling in `{window.to_region()}`, one row per alternate allele:",
            echo=f'read_variants("{vcf.name}", window)',
            run=show_records,
        ),
        Chunk(
            name="vcf-genotypes",
            prose="Each sample's genotype at those sites:",
            echo=f'genotype_table("{vcf.name}", window)',
            run=show_genotypes,
        ),
        Chunk(
            name="vcf-classes-plot",
            prose="The variant classes across the whole file:",
            echo="plot_variant_classes(summary, \"variant_classes.png\")",
            run=show_classes,
        ),
    ]


def _expression_chunks(config: TourConfig, logger: structlog.BoundLogger) -> List[Chunk]:
    matrix_path = config.expression_matrix
    phenotype_path = config.phenotype_table
    condition_column = config.condition_column
    time_column = config.time_column

    def load(session):
        experiment = expression.ExpressionExperiment.from_files(matrix_path, phenotype_path)
        session["experiment"] = experiment
        return [experiment.summarize(condition_column, time_column), experiment.phenotype]

    def subset(session):
        experiment = session["experiment"]
        condition = config.condition_value
        if condition is None:
            conditions = experiment.summarize(condition_column, time_column).conditions
            if not conditions:
                raise KeyError(f"Phenotype column '{condition_column}' not found or empty")
            condition = conditions[0]
        subset_experiment = experiment.subset(**{condition_column: condition})
        session["condition"] = condition
        return [f"{condition}: {subset_experiment!r}", subset_experiment.phenotype]

    def time_course(session):
        experiment = session["experiment"]
        feature = config.expression_feature or experiment.features[0]
        has_condition = condition_column in experiment.phenotype.columns
        course = experiment.time_course(
            feature, time_column,
            condition_column if has_condition else None
        )
        figure = plotting.plot_time_course(
            course, feature, session["figure_dir"] / f"time_course_{feature}.png",
            logger, dpi=config.figure_dpi
        )
        return [course, figure]

    return [
        Chunk(
            name="expression-load",
            prose="## Gene-expression time series\n\nA microarray experiment bundles "
                  "an expression matrix (features by samples) with a table describing "
                  "each sample.",
            echo=f'experiment = ExpressionExperiment.from_files("{matrix_path.name}", "{phenotype_path.name}")\n'
                 f'experiment.summarize()',
            run=load,
        ),
        Chunk(
            name="expression-subset",
            prose="Subsetting by sample metadata keeps the matrix and its metadata aligned.",
            echo=f'experiment.subset({condition_column}="{config.condition_value or "..."}")',
            run=subset,
        ),
        Chunk(
            name="expression-time-course",
            prose="One feature followed across the time points, per condition:",
            echo=f'course = experiment.time_course("{config.expression_feature or "..."}", "{time_column}", "{condition_column}")\n'
                 f'plot_time_course(course, ...)',
            run=time_course,
        ),
    ]


def _read_chunks(config: TourConfig, window: GenomicWindow, logger: structlog.BoundLogger) -> List[Chunk]:
    bam = config.bam_file
    mapq = config.min_mapping_quality

    def show_reads(session):
        return alignments.read_window(bam, window, min_mapping_quality=mapq)

    def show_summary(session):
        return alignments.summarize_reads(bam, window, min_mapping_quality=mapq)

    def show_coverage(session):
        depth = alignments.coverage(bam, window, min_mapping_quality=mapq)
        return plotting.plot_coverage(
            depth, window, session["figure_dir"] / "coverage.png",
            logger, dpi=config.figure_dpi
        )

    return [
        Chunk(
            name="reads-window",
            prose=f"## RNA-seq read alignments\n\nAn indexed BAM file can be scanned "
                  f"for the reads overlapping a region, here `{window.to_region()}`. "
                  f"Spliced reads carry an `N` in their CIGAR string.",
            echo=f'read_window("{bam.name}", window, min_mapping_quality={mapq})',
            run=show_reads,
        ),
        Chunk(
            name="reads-summary",
            prose="A summary of the same reads:",
            echo=f'summarize_reads("{bam.name}", window)',
            run=show_summary,
        ),
        Chunk(
            name="reads-coverage",
            prose="Read depth across the region:",
            echo=f'plot_coverage(coverage("{bam.name}", window), window, "coverage.png")',
            run=show_coverage,
        ),
    ]


def build_default_tutorial(
    config: TourConfig,
    logger: structlog.BoundLogger,
    stop_on_error: bool = True
) -> TutorialDocument:
    """
    Build the four-part tutorial from the configured data files.

    Sections whose data are not configured are left out.
    """
    window = config.get_window()
    document = TutorialDocument(
        title="A tour of genomic data",
        output_dir=config.output_dir,
        logger=logger,
        intro=INTRO,
        stop_on_error=stop_on_error,
    )

    sections = []
    if config.reference_fasta is not None:
        sections.append(("reference", _reference_chunks(config, window)))
    else:
        logger.warning("Skipping reference section, no reference_fasta configured")
    if config.vcf_file is not None:
        sections.append(("variants", _variant_chunks(config, window, logger)))
    else:
        logger.warning("Skipping variant section, no vcf_file configured")
    if config.expression_matrix is not None and config.phenotype_table is not None:
        sections.append(("expression", _expression_chunks(config, logger)))
    else:
        logger.warning("Skipping expression section, expression_matrix/phenotype_table not configured")
    if config.bam_file is not None:
        sections.append(("reads", _read_chunks(config, window, logger)))
    else:
        logger.warning("Skipping read alignment section, no bam_file configured")

    for _, chunks in sections:
        document.chunks.extend(chunks)

    logger.info("Tutorial built", sections=[name for name, _ in sections],
                chunks=len(document.chunks))
    return document
