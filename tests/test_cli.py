"""Integration tests for the CLI commands using CliRunner.

Tests:
- info output
- rank end-to-end with checkpoint skip and --force
- ranking failures exit non-zero with the cohort named
- report output files and missing-cohort handling
"""

import polars as pl
import pytest
import yaml
from click.testing import CliRunner

from reftx_pipeline.cli.main import cli
from reftx_pipeline.persistence import PipelineStore
from reftx_pipeline.ranking import query_consensus


@pytest.fixture
def test_config(tmp_path, write_inputs, counts):
    """Two cohorts sharing the synthetic annotation tables."""
    cell_lines = write_inputs("cell_lines")
    plasma = write_inputs("plasma", counts)

    config_path = tmp_path / "test_config.yaml"
    config_path.write_text(f"""
data_dir: {tmp_path}/data
duckdb_path: {tmp_path}/test.duckdb

versions:
  genome_build: GRCh38
  annotation_release: 110

annotation:
  gene_lengths: {cell_lines["gene_lengths"]}
  gene_symbols: {cell_lines["gene_symbols"]}

ranking:
  top_n: 3

cohorts:
  - name: cell_lines
    counts: {cell_lines["counts"]}
    policy: zero_floor
  - name: plasma
    counts: {plasma["counts"]}
    policy: plain_mean
""")
    return config_path


def test_info(test_config):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'info'])

    assert result.exit_code == 0
    assert 'Config Hash:' in result.output
    assert 'GRCh38' in result.output
    assert 'cell_lines: policy=zero_floor' in result.output
    assert 'plasma: policy=plain_mean' in result.output


def test_rank_help(test_config):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'rank', '--help'])

    assert result.exit_code == 0
    assert '--cohort' in result.output
    assert '--force' in result.output


def test_rank_all_cohorts(test_config, tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'rank'])

    assert result.exit_code == 0, result.output
    assert 'Ranking complete!' in result.output
    assert 'Cohorts ranked: 2/2' in result.output
    assert (tmp_path / "data" / "ranking" / "ranking.provenance.json").exists()

    with PipelineStore(tmp_path / "test.duckdb") as store:
        cell_lines = query_consensus(store, "cell_lines")
        plasma = query_consensus(store, "plasma")

    assert cell_lines["gene_symbol"].to_list() == ["ACTB", "GAPDH", "ENSG0005", "SPOR", "OFF"]
    assert plasma["gene_symbol"].to_list() == ["ACTB", "GAPDH", "SPOR", "ENSG0005", "OFF"]


def test_rank_skips_checkpointed_cohort(test_config):
    runner = CliRunner()
    runner.invoke(cli, ['--config', str(test_config), 'rank', '--cohort', 'plasma'])

    result = runner.invoke(cli, ['--config', str(test_config), 'rank'])
    assert result.exit_code == 0
    assert 'Skipping' in result.output
    assert 'Cohorts ranked: 1/2' in result.output

    result = runner.invoke(cli, ['--config', str(test_config), 'rank', '--force'])
    assert result.exit_code == 0
    assert 'Cohorts ranked: 2/2' in result.output


def test_rank_unknown_cohort(test_config):
    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'rank', '--cohort', 'serum'])

    assert result.exit_code == 1
    assert 'Unknown cohort: serum' in result.output


def test_rank_failure_names_cohort(test_config, tmp_path):
    """A missing gene length fails the cohort and persists nothing for it."""
    lengths_path = tmp_path / "annotation" / "gene_lengths.tsv"
    lengths = pl.read_csv(lengths_path, separator="\t")
    lengths.filter(pl.col("gene_id") != "ENSG0004").write_csv(lengths_path, separator="\t")

    runner = CliRunner()
    result = runner.invoke(cli, ['--config', str(test_config), 'rank'])

    assert result.exit_code == 1
    assert 'Ranking failed: [cohort=cell_lines]' in result.output
    assert 'ENSG0004' in result.output

    with PipelineStore(tmp_path / "test.duckdb") as store:
        assert query_consensus(store, "cell_lines").is_empty()


def test_report_generates_files(test_config, tmp_path):
    runner = CliRunner()
    runner.invoke(cli, ['--config', str(test_config), 'rank'])

    result = runner.invoke(cli, ['--config', str(test_config), 'report'])

    assert result.exit_code == 0, result.output
    assert 'Report generation complete!' in result.output

    output_dir = tmp_path / "data" / "report"
    tsv = pl.read_csv(output_dir / "cell_lines_top3.tsv", separator="\t")
    assert tsv["gene_symbol"].to_list() == ["ACTB", "GAPDH", "ENSG0005"]
    assert (output_dir / "plasma_top3.parquet").exists()

    with open(output_dir / "plasma_top3.provenance.yaml") as f:
        provenance = yaml.safe_load(f)
    assert provenance["cohort"] == "plasma"
    assert provenance["policy"] == "plain_mean"
    assert provenance["top_n"] == 3
    assert provenance["groups"] == ["HEK", "HeLa"]
    assert "ranked_at" in provenance


def test_report_top_n_and_output_dir(test_config, tmp_path):
    runner = CliRunner()
    runner.invoke(cli, ['--config', str(test_config), 'rank', '--cohort', 'cell_lines'])

    out = tmp_path / "custom"
    result = runner.invoke(cli, [
        '--config', str(test_config),
        'report', '--cohort', 'cell_lines', '--top-n', '2', '--output-dir', str(out),
    ])

    assert result.exit_code == 0, result.output
    assert pl.read_parquet(out / "cell_lines_top2.parquet").height == 2


def test_report_missing_cohort(test_config):
    runner = CliRunner()
    runner.invoke(cli, ['--config', str(test_config), 'rank', '--cohort', 'cell_lines'])

    result = runner.invoke(cli, ['--config', str(test_config), 'report'])

    assert result.exit_code == 1
    assert 'No consensus ranking found' in result.output
    assert 'Missing consensus for: plasma' in result.output
