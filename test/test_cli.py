#!/usr/bin/env python3
"""
Tests for the command-line interface.
"""

import importlib

import pytest
from click.testing import CliRunner

from genotour.cli.main import cli, parse_where


@pytest.fixture
def runner():
    return CliRunner()


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "genotour" in result.output


def test_genome_lists_chromosomes(runner, fasta_file):
    result = runner.invoke(cli, ["genome", str(fasta_file)])
    assert result.exit_code == 0, result.output
    assert "chr1" in result.output
    assert "1,000" in result.output


def test_genome_window(runner, fasta_file):
    result = runner.invoke(cli, ["genome", str(fasta_file), "--region", "chr1:1-12"])
    assert result.exit_code == 0, result.output
    assert "58.3%" in result.output
    assert "ACGTTGCAAGGC" in result.output


def test_genome_bad_region(runner, fasta_file):
    result = runner.invoke(cli, ["genome", str(fasta_file), "--region", "chr1:1-5000"])
    assert result.exit_code == 1
    assert "extends past the end" in result.output


def test_vcf_summary(runner, vcf_file, tmp_path):
    plot = tmp_path / "classes.png"
    result = runner.invoke(cli, ["vcf", str(vcf_file), "--genotypes", "--plot", str(plot)])
    assert result.exit_code == 0, result.output
    assert "Records" in result.output
    assert "s1, s2" in result.output
    assert "0|1" in result.output
    assert plot.exists()


def test_vcf_region(runner, indexed_vcf_file):
    result = runner.invoke(cli, ["vcf", str(indexed_vcf_file), "--region", "chr2:1-100"])
    assert result.exit_code == 0, result.output
    assert "chr2:1-100" in result.output


def test_expression_subset_and_plot(runner, expression_files, tmp_path):
    matrix_path, phenotype_path = expression_files
    plot = tmp_path / "course.png"
    result = runner.invoke(cli, [
        "expression", str(matrix_path), str(phenotype_path),
        "--where", "condition=heat", "--feature", "geneA", "--plot", str(plot),
    ])
    assert result.exit_code == 0, result.output
    assert "heat" in result.output
    assert "control" not in result.output
    assert plot.exists()


def test_expression_bad_where(runner, expression_files):
    matrix_path, phenotype_path = expression_files
    result = runner.invoke(cli, [
        "expression", str(matrix_path), str(phenotype_path), "--where", "tissue=liver",
    ])
    assert result.exit_code == 1
    assert "tissue" in result.output


def test_reads(runner, bam_file, tmp_path):
    plot = tmp_path / "coverage.png"
    result = runner.invoke(cli, [
        "reads", str(bam_file), "--region", "chr1:100-200", "--show-reads", "--plot", str(plot),
    ])
    assert result.exit_code == 0, result.output
    assert "Spliced reads" in result.output
    assert "20M100N30M" in result.output
    assert plot.exists()


def test_reads_requires_region(runner, bam_file):
    result = runner.invoke(cli, ["reads", str(bam_file)])
    assert result.exit_code == 2


def test_render(runner, tmp_path, fasta_file, vcf_file, bam_file):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[Paths]\n"
        f"REFERENCE_FASTA = {fasta_file}\n"
        f"VCF_FILE = {vcf_file}\n"
        f"BAM_FILE = {bam_file}\n"
        "\n"
        "[Parameters]\n"
        "REGION = chr1:100-200\n"
    )
    out_dir = tmp_path / "rendered"
    result = runner.invoke(cli, [
        "render", "--config", str(config_path), "--output-dir", str(out_dir), "--log-level", "ERROR",
    ])
    assert result.exit_code == 0, result.output
    assert (out_dir / "tutorial.md").exists()
    assert (out_dir / "figures" / "coverage.png").exists()


def test_render_failure(runner, tmp_path, fasta_file):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[Paths]\n"
        f"REFERENCE_FASTA = {fasta_file}\n"
        "\n"
        "[Parameters]\n"
        "REGION = chr2:150-400\n"
    )
    result = runner.invoke(cli, [
        "render", "--config", str(config_path), "--output-dir", str(tmp_path / "out"), "--log-level", "ERROR",
    ])
    assert result.exit_code == 1
    assert "reference-window" in result.output


def test_render_nothing_configured(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(cli, ["render", "--output-dir", str(tmp_path / "out"), "--log-level", "ERROR"])
    assert result.exit_code == 1
    assert "nothing to render" in result.output


def test_validate(runner, tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text(f"[Paths]\nVCF_FILE = {tmp_path / 'missing.vcf'}\n")
    result = runner.invoke(cli, ["validate", "--config", str(config_path)])
    assert result.exit_code == 1
    assert "validation failed" in result.output


def test_parse_where():
    assert parse_where(["condition=heat", " time = 2"]) == {"condition": "heat", "time": "2"}
    with pytest.raises(Exception, match="Expected column=value"):
        parse_where(["condition"])


def test_genome_whole_chromosome(runner, fasta_file):
    result = runner.invoke(cli, ["genome", str(fasta_file), "--region", "chr2"])
    assert result.exit_code == 0, result.output
    assert "Sequence chr2:1-200" in result.output
    assert "200" in result.output


def test_genome_unknown_chromosome(runner, fasta_file):
    result = runner.invoke(cli, ["genome", str(fasta_file), "--region", "chrM"])
    assert result.exit_code == 1
    assert "not found in reference" in result.output


def test_reads_whole_chromosome(runner, bam_file):
    result = runner.invoke(cli, ["reads", str(bam_file), "--region", "chr1"])
    assert result.exit_code == 0, result.output
    assert "Reads in chr1:1-1000" in result.output
    assert "Mapped reads" in result.output


def test_render_keeps_configured_log_level(runner, tmp_path, fasta_file, mocker):
    cli_main = importlib.import_module("genotour.cli.main")

    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[Paths]\n"
        f"REFERENCE_FASTA = {fasta_file}\n"
        "\n"
        "[Parameters]\n"
        "REGION = chr1:1-50\n"
        "LOG_LEVEL = ERROR\n"
    )
    spy = mocker.spy(cli_main, "setup_logging")
    result = runner.invoke(cli, ["render", "--config", str(config_path), "--output-dir", str(tmp_path / "out")])
    assert result.exit_code == 0, result.output
    assert spy.call_args.kwargs["log_level"] == "ERROR"

    result = runner.invoke(cli, [
        "render", "--config", str(config_path), "--output-dir", str(tmp_path / "out"), "--log-level", "DEBUG",
    ])
    assert result.exit_code == 0, result.output
    assert spy.call_args.kwargs["log_level"] == "DEBUG"
