#!/usr/bin/env python3
"""
Tests for configuration loading and validation.
"""

import os
import pytest
from pathlib import Path

from genotour.config.settings import TourConfig, load_tour_config


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every test away from any .env file and GENOTOUR_ variables."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.upper().startswith("GENOTOUR_"):
            monkeypatch.delenv(name)


def test_config_defaults():
    """Test that TourConfig can be created without any data files."""
    config = TourConfig()
    assert config.reference_fasta is None
    assert config.min_mapping_quality == 0
    assert config.get_window().to_region() == "chr1:1-1000"
    assert config.get_document_path() == Path("./tour_output") / "tutorial.md"


def test_config_validation():
    """Test that invalid values are rejected."""
    with pytest.raises(ValueError, match="Minimum mapping quality must be non-negative"):
        TourConfig(min_mapping_quality=-1)
    with pytest.raises(ValueError, match="Figure DPI must be positive"):
        TourConfig(figure_dpi=0)
    with pytest.raises(ValueError, match="Invalid region"):
        TourConfig(region="chr1:abc")
    with pytest.raises(ValueError, match="Log level must be one of"):
        TourConfig(log_level="chatty")


def test_config_log_level_normalized():
    assert TourConfig(log_level="debug").log_level == "DEBUG"


def test_config_from_environment(monkeypatch):
    """Test that GENOTOUR_ environment variables are picked up."""
    monkeypatch.setenv("GENOTOUR_REGION", "chr2:10-20")
    monkeypatch.setenv("GENOTOUR_MIN_MAPPING_QUALITY", "20")
    config = TourConfig()
    assert config.region == "chr2:10-20"
    assert config.min_mapping_quality == 20


def test_ensure_directories(tmp_path):
    config = TourConfig(output_dir=tmp_path / "out")
    config.ensure_directories()
    assert (tmp_path / "out" / "figures").is_dir()


def test_validate_setup_reports_missing_files(tmp_path):
    config = TourConfig(
        reference_fasta=tmp_path / "missing.fa",
        expression_matrix=tmp_path / "matrix.tsv",
    )
    errors = config.validate_setup()
    assert any("reference_fasta" in e for e in errors)
    assert any("expression_matrix" in e for e in errors)
    assert any("must be configured together" in e for e in errors)


def test_validate_setup_requires_bam_index(unindexed_bam_file, bam_file):
    assert TourConfig(bam_file=bam_file).validate_setup() == []
    errors = TourConfig(bam_file=unindexed_bam_file).validate_setup()
    assert errors == [f"BAM index not found for: {unindexed_bam_file}"]


def test_load_tour_config(tmp_path, fasta_file):
    """Test loading a config.ini with relative and absolute paths."""
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[Paths]\n"
        "REFERENCE_FASTA = genome.fa\n"
        f"OUTPUT_DIR = {tmp_path / 'rendered'}\n"
        "\n"
        "[Parameters]\n"
        "REGION = chr1:10-50\n"
        "MIN_MAPPING_QUALITY = 30\n"
        "CONDITION_VALUE = heat\n"
    )
    config = load_tour_config(config_path)
    assert config.reference_fasta == tmp_path / "genome.fa"
    assert config.output_dir == tmp_path / "rendered"
    assert config.region == "chr1:10-50"
    assert config.min_mapping_quality == 30
    assert config.condition_value == "heat"
    assert config.vcf_file is None
    assert config.validate_setup() == []


def test_load_tour_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="Configuration file not found"):
        load_tour_config(tmp_path / "nope.ini")


def test_load_tour_config_rejects_bad_region(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[Parameters]\nREGION = not a region\n")
    with pytest.raises(ValueError, match="Invalid region"):
        load_tour_config(config_path)
