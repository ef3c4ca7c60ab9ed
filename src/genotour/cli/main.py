"""
Main command-line interface for the genomic data tour.
"""

import sys
from pathlib import Path
from typing import Optional, List
import click
import configparser
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..config.settings import TourConfig, load_tour_config
from ..core import alignments, expression, plotting, reference, variants
from ..core.tutorial import RenderError, build_default_tutorial
from ..models import GenomicWindow
from ..utils import setup_logging
from .. import __version__


console = Console()

LOG_LEVEL_OPTION = click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)


@click.group()
@click.version_option(version=__version__, prog_name="genotour")
def cli():
    """A tour of genomic data - reference, variants, expression and reads."""
    pass


@cli.command()
@click.option(
    "--config",
    help="Configuration file path",
    type=click.Path(exists=True, path_type=Path),
)
@click.option(
    "--output-dir",
    help="Output directory for the document and figures",
    type=click.Path(path_type=Path),
)
@click.option(
    "--keep-going",
    is_flag=True,
    help="Record failing chunks in the document instead of aborting",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides LOG_LEVEL in the configuration file)",
)
@click.option(
    "--log-file",
    help="Log file path",
    type=click.Path(path_type=Path),
)
def render(
    config: Optional[Path],
    output_dir: Optional[Path],
    keep_going: bool,
    log_level: Optional[str],
    log_file: Optional[Path]
):
    """Render the tutorial document from the configured data files."""

    # Load configuration
    try:
        tour_config = load_tour_config(config) if config else TourConfig()
        if output_dir:
            tour_config.output_dir = output_dir
        if log_level:
            tour_config.log_level = log_level
        if log_file:
            tour_config.log_file = log_file
    except configparser.Error as e:
        console.print(f"[red]Error reading configuration file {config}: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    logger = setup_logging(
        log_level=tour_config.log_level,
        log_file=tour_config.log_file,
        log_format="console"
    )

    errors = tour_config.validate_setup()
    if errors:
        console.print("[red]Configuration validation failed:[/red]")
        for error in errors:
            console.print(f"  [red]- {error}[/red]")
        sys.exit(1)

    try:
        tour_config.ensure_directories()
        document = build_default_tutorial(tour_config, logger, stop_on_error=not keep_going)
        if not document.chunks:
            console.print("[yellow]No data files configured - nothing to render[/yellow]")
            sys.exit(1)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Rendering tutorial...", total=None)
            document_path = document.render(tour_config.get_document_path())
            progress.update(task, description="Tutorial rendered")

    except RenderError as e:
        console.print(f"[red]Render failed in chunk '{e.chunk_name}': {e.cause}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Render failed: {e}[/red]")
        logger.error("Render failed", error=str(e))
        sys.exit(1)

    display_chunk_results(document.results)
    console.print(f"[green]Document written to {document_path}[/green]")
    if any(r.status == "error" for r in document.results):
        sys.exit(1)


@cli.command()
@click.argument("fasta", type=click.Path(exists=True, path_type=Path))
@click.option("--region", help="Genomic window (chr:start-end or chromosome); omit to list chromosomes")
@click.option("--preview", default=60, show_default=True, help="Number of bases to preview")
@LOG_LEVEL_OPTION
def genome(fasta: Path, region: Optional[str], preview: int, log_level: str):
    """Show the chromosomes of a reference genome or one window of it."""
    logger = setup_logging(log_level=log_level, log_format="console")
    try:
        if region is None:
            with reference.open_reference(fasta, logger) as ref:
                chromosomes = reference.list_chromosomes(ref)
            table = Table(title=f"Chromosomes in {fasta.name}")
            table.add_column("Chromosome", style="cyan")
            table.add_column("Length", style="magenta", justify="right")
            for row in chromosomes.itertuples(index=False):
                table.add_row(str(row.chromosome), f"{row.length:,}")
            console.print(table)
            return

        with reference.open_reference(fasta) as ref:
            window = reference.resolve_window(ref, region)
        summary = reference.summarize_window(fasta, window, logger, preview_length=preview)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Sequence {window.to_region()}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Length", f"{summary.length:,}")
    table.add_row("GC content", f"{summary.gc_content:.1f}%")
    for base, count in summary.base_counts.items():
        table.add_row(f"{base} bases", str(count))
    console.print(table)
    console.print(summary.preview)


@cli.command()
@click.argument("vcf", type=click.Path(exists=True, path_type=Path))
@click.option("--region", help="Restrict to a genomic window (chr:start-end)")
@click.option("--genotypes", is_flag=True, help="Also print the genotype table")
@click.option("--plot", type=click.Path(path_type=Path), help="Save a variant class bar chart")
@LOG_LEVEL_OPTION
def vcf(vcf: Path, region: Optional[str], genotypes: bool, plot: Optional[Path], log_level: str):
    """Summarize a VCF file."""
    logger = setup_logging(log_level=log_level, log_format="console")
    try:
        window = GenomicWindow.from_region(region) if region else None
        summary = variants.summarize_vcf(vcf, window, logger)
        genotype_df = variants.genotype_table(vcf, window) if genotypes else None
        figure = plotting.plot_variant_classes(summary, plot, logger) if plot else None
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    display_variant_summary(summary)
    if genotype_df is not None:
        console.print(genotype_df.to_string() if not genotype_df.empty else "No records")
    if figure is not None:
        console.print(f"[green]Plot saved to {figure}[/green]")


@cli.command("expression")
@click.argument("matrix", type=click.Path(exists=True, path_type=Path))
@click.argument("phenotype", type=click.Path(exists=True, path_type=Path))
@click.option("--where", multiple=True, help="Subset samples by metadata (column=value), repeatable")
@click.option("--feature", help="Feature to follow across time")
@click.option("--time-column", default="time", show_default=True)
@click.option("--condition-column", default="condition", show_default=True)
@click.option("--plot", type=click.Path(path_type=Path), help="Save the time course plot")
@LOG_LEVEL_OPTION
def expression_command(
    matrix: Path,
    phenotype: Path,
    where: List[str],
    feature: Optional[str],
    time_column: str,
    condition_column: str,
    plot: Optional[Path],
    log_level: str
):
    """Summarize and subset an expression experiment."""
    logger = setup_logging(log_level=log_level, log_format="console")
    try:
        equals = parse_where(where)
        experiment = expression.ExpressionExperiment.from_files(matrix, phenotype, logger)
        if equals:
            experiment = experiment.subset(**equals)
        summary = experiment.summarize(condition_column, time_column)
        course = None
        if feature:
            has_condition = condition_column in experiment.phenotype.columns
            course = experiment.time_course(
                feature, time_column, condition_column if has_condition else None
            )
            if plot:
                plotting.plot_time_course(course, feature, plot, logger)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    table = Table(title="Expression experiment")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Features", str(summary.n_features))
    table.add_row("Samples", str(summary.n_samples))
    table.add_row("Conditions", ", ".join(summary.conditions) or "-")
    table.add_row("Time points", ", ".join(f"{t:g}" for t in summary.time_points) or "-")
    for condition, count in summary.samples_per_condition.items():
        table.add_row(f"Samples ({condition})", str(count))
    console.print(table)
    if course is not None:
        console.print(course.to_string(index=False))


@cli.command()
@click.argument("bam", type=click.Path(exists=True, path_type=Path))
@click.option("--region", required=True, help="Scan region (chr:start-end or chromosome)")
@click.option("--min-mapq", default=0, show_default=True, help="Minimum mapping quality")
@click.option("--show-reads", is_flag=True, help="Print the reads in the region")
@click.option("--plot", type=click.Path(path_type=Path), help="Save a coverage plot")
@LOG_LEVEL_OPTION
def reads(bam: Path, region: str, min_mapq: int, show_reads: bool, plot: Optional[Path], log_level: str):
    """Summarize RNA-seq reads in a genomic window."""
    logger = setup_logging(log_level=log_level, log_format="console")
    try:
        window = alignments.resolve_window(bam, region)
        summary = alignments.summarize_reads(bam, window, min_mapq, logger)
        read_df = alignments.read_window(bam, window, min_mapq) if show_reads else None
        if plot:
            depth = alignments.coverage(bam, window, min_mapq)
            plotting.plot_coverage(depth, window, plot, logger)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Reads in {summary.region}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Mapped reads", str(summary.mapped_reads))
    table.add_row("Reads", str(summary.total_reads))
    table.add_row("Forward / reverse", f"{summary.forward} / {summary.reverse}")
    table.add_row("Spliced reads", str(summary.spliced_reads))
    table.add_row("Mean MAPQ", f"{summary.mean_mapping_quality:.1f}")
    table.add_row("Mean read length", f"{summary.mean_read_length:.1f}")
    table.add_row("Mean coverage", f"{summary.mean_coverage:.2f}x")
    table.add_row("Max coverage", f"{summary.max_coverage}x")
    console.print(table)
    if read_df is not None:
        console.print(read_df.to_string(index=False) if not read_df.empty else "No reads")


@cli.command()
@click.option(
    "--config",
    help="Configuration file path",
    type=click.Path(exists=True, path_type=Path),
)
def validate(config: Optional[Path]):
    """Validate configuration and data files."""
    try:
        tour_config = load_tour_config(config) if config else TourConfig()
    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    display_config_summary(tour_config)
    errors = tour_config.validate_setup()
    if errors:
        console.print("[red]Configuration validation failed:[/red]")
        for error in errors:
            console.print(f"  [red]- {error}[/red]")
        sys.exit(1)
    console.print("[green]✓ Configuration is valid[/green]")


def parse_where(where: List[str]) -> dict:
    """Parse column=value subset expressions."""
    equals = {}
    for expr in where:
        if "=" not in expr:
            raise click.BadParameter(f"Expected column=value, got '{expr}'", param_hint="--where")
        column, value = expr.split("=", 1)
        equals[column.strip()] = value.strip()
    return equals


def display_variant_summary(summary):
    """Display a VCF summary in a formatted table."""
    table = Table(title=f"VCF summary{' ' + summary.region if summary.region else ''}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Samples", ", ".join(summary.samples) or "-")
    table.add_row("Records", str(summary.total_records))
    table.add_row("PASS", str(summary.pass_filter))
    for chrom, count in summary.records_per_chromosome.items():
        table.add_row(f"Records ({chrom})", str(count))
    for variant_class, count in summary.variant_classes.items():
        table.add_row(variant_class, str(count))
    if summary.mean_qual is not None:
        table.add_row("Mean QUAL", f"{summary.mean_qual:.1f}")
    ti_tv = summary.ti_tv_ratio
    table.add_row("Ti/Tv", f"{ti_tv:.2f}" if ti_tv is not None else "-")

    console.print(table)


def display_chunk_results(results):
    """Display chunk outcomes in a formatted table."""
    table = Table(title="Chunks")
    table.add_column("Chunk", style="cyan")
    table.add_column("Status")
    table.add_column("Seconds", justify="right")
    for result in results:
        status = "[green]ok[/green]" if result.status == "success" else f"[red]{result.error}[/red]"
        table.add_row(result.name, status, f"{result.duration_seconds:.2f}")
    console.print(table)


def display_config_summary(config: TourConfig):
    """Display configuration summary."""
    table = Table(title="Configuration Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Output Directory", str(config.output_dir))
    table.add_row("Reference FASTA", str(config.reference_fasta))
    table.add_row("VCF", str(config.vcf_file))
    table.add_row("Expression matrix", str(config.expression_matrix))
    table.add_row("Phenotype table", str(config.phenotype_table))
    table.add_row("BAM", str(config.bam_file))
    table.add_row("Region", config.region)
    table.add_row("Log Level", config.log_level)

    console.print(table)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
