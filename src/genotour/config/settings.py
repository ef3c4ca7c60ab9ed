"""
Configuration settings for the genomic data tour.
"""

import configparser
from pathlib import Path
from typing import Optional, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from ..models import GenomicWindow


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class TourConfig(BaseSettings):
    """Configuration for the genomic data tour."""

    # Output
    output_dir: Path = Field(default=Path("./tour_output"), description="Directory for the rendered document and figures")
    document_name: str = Field(default="tutorial.md", description="File name of the rendered document")

    # Data files
    reference_fasta: Optional[Path] = Field(default=None, description="Reference genome FASTA file")
    vcf_file: Optional[Path] = Field(default=None, description="VCF file to summarize")
    expression_matrix: Optional[Path] = Field(default=None, description="Expression matrix (features x samples)")
    phenotype_table: Optional[Path] = Field(default=None, description="Sample metadata table")
    bam_file: Optional[Path] = Field(default=None, description="Sorted and indexed BAM file")

    # Parameters
    region: str = Field(default="chr1:1-1000", description="Default genomic window (chr:start-end)")
    condition_column: str = Field(default="condition", description="Phenotype column holding the condition")
    condition_value: Optional[str] = Field(default=None, description="Condition used to subset the experiment")
    time_column: str = Field(default="time", description="Phenotype column holding the time point")
    expression_feature: Optional[str] = Field(default=None, description="Feature plotted as a time course")
    min_mapping_quality: int = Field(default=0, description="Minimum mapping quality for reads")
    figure_dpi: int = Field(default=100, description="Resolution of saved figures")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Log file path")

    @field_validator('output_dir', 'reference_fasta', 'vcf_file', 'expression_matrix',
                     'phenotype_table', 'bam_file', 'log_file')
    @classmethod
    def validate_paths(cls, v):
        """Coerce string paths to Path objects."""
        if isinstance(v, str):
            v = Path(v)
        return v

    @field_validator('region')
    @classmethod
    def validate_region(cls, v):
        """Validate that the default region parses."""
        GenomicWindow.from_region(v)
        return v

    @field_validator('min_mapping_quality')
    @classmethod
    def validate_mapq(cls, v):
        """Validate mapping quality threshold is non-negative."""
        if v < 0:
            raise ValueError("Minimum mapping quality must be non-negative")
        return v

    @field_validator('figure_dpi')
    @classmethod
    def validate_dpi(cls, v):
        """Validate figure resolution is positive."""
        if v <= 0:
            raise ValueError("Figure DPI must be positive")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is known."""
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(LOG_LEVELS)}")
        return v.upper()

    model_config = {
        "env_prefix": "GENOTOUR_",
        "case_sensitive": False,
        "env_file": ".env",
        "validate_assignment": True,
    }

    def get_window(self) -> GenomicWindow:
        """Get the default genomic window."""
        return GenomicWindow.from_region(self.region)

    def get_figure_dir(self) -> Path:
        """Get the figure directory path."""
        return self.output_dir / "figures"

    def get_document_path(self) -> Path:
        """Get the rendered document path."""
        return self.output_dir / self.document_name

    def ensure_directories(self) -> None:
        """Ensure all output directories exist."""
        for directory in [self.output_dir, self.get_figure_dir()]:
            directory.mkdir(parents=True, exist_ok=True)

    def validate_setup(self) -> List[str]:
        """Validate that the configured data files exist."""
        errors = []

        configured_files = {
            "reference_fasta": self.reference_fasta,
            "vcf_file": self.vcf_file,
            "expression_matrix": self.expression_matrix,
            "phenotype_table": self.phenotype_table,
            "bam_file": self.bam_file,
        }

        for name, file_path in configured_files.items():
            if file_path is not None and not file_path.exists():
                errors.append(f"Configured file not found ({name}): {file_path}")

        # The matrix and its metadata only make sense together
        if (self.expression_matrix is None) != (self.phenotype_table is None):
            errors.append("expression_matrix and phenotype_table must be configured together")

        if self.bam_file is not None and self.bam_file.exists():
            index_candidates = [
                Path(str(self.bam_file) + ".bai"),
                self.bam_file.with_suffix(".bai"),
                Path(str(self.bam_file) + ".csi"),
            ]
            if not any(p.exists() for p in index_candidates):
                errors.append(f"BAM index not found for: {self.bam_file}")

        return errors


def load_tour_config(config_file_path: Path) -> TourConfig:
    """
    Handles loading of tour variables from a config.ini file.

    Recognized sections are [Paths] and [Parameters]; missing keys keep
    their defaults (or environment overrides).
    """
    tour_config = TourConfig()
    config_elem = configparser.ConfigParser()
    config_read = config_elem.read(config_file_path)
    # Raise an error if the file was specified but not found/readable
    if not config_read:
        raise FileNotFoundError(
            f"Configuration file not found or empty: {config_file_path}"
        )

    path_keys = {
        'OUTPUT_DIR': 'output_dir',
        'REFERENCE_FASTA': 'reference_fasta',
        'VCF_FILE': 'vcf_file',
        'EXPRESSION_MATRIX': 'expression_matrix',
        'PHENOTYPE_TABLE': 'phenotype_table',
        'BAM_FILE': 'bam_file',
        'LOG_FILE': 'log_file',
    }
    if config_elem.has_section('Paths'):
        base = Path(config_file_path).parent
        for key, attr in path_keys.items():
            value = config_elem['Paths'].get(key)
            if value:
                path = Path(value).expanduser()
                # Relative paths are relative to the config file
                setattr(tour_config, attr, path if path.is_absolute() else base / path)

    parameter_keys = {
        'REGION': 'region',
        'CONDITION_COLUMN': 'condition_column',
        'CONDITION_VALUE': 'condition_value',
        'TIME_COLUMN': 'time_column',
        'EXPRESSION_FEATURE': 'expression_feature',
        'MIN_MAPPING_QUALITY': 'min_mapping_quality',
        'FIGURE_DPI': 'figure_dpi',
        'LOG_LEVEL': 'log_level',
        'DOCUMENT_NAME': 'document_name',
    }
    if config_elem.has_section('Parameters'):
        for key, attr in parameter_keys.items():
            value = config_elem['Parameters'].get(key)
            if value:
                setattr(tour_config, attr, value)

    return tour_config
