"""Main CLI entry point for reftx-pipeline.

Provides command group with global options and subcommands for pipeline operations.
"""

import logging
from pathlib import Path

import click

from reftx_pipeline import __version__
from reftx_pipeline.config.loader import load_config
from reftx_pipeline.cli.rank_cmd import rank
from reftx_pipeline.cli.report_cmd import report


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
@click.version_option(__version__, prog_name="reftx-pipeline")
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to pipeline configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.pass_context
def cli(ctx, config, verbose):
    """Reftx-pipeline: rank candidate EV reference transcripts across sample groups.

    Normalizes counts to RPKM, aggregates replicate groups, collapses gene
    identifiers to symbols, ranks genes within each group and combines the
    ranks into a per-cohort rank-sum consensus.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def info(ctx):
    """Display pipeline information and configuration summary."""
    config_path = ctx.obj['config_path']

    click.echo(f"Reftx Pipeline v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config(config_path)

        config_hash = config.config_hash()
        click.echo(f"Config Hash: {config_hash[:16]}...")
        click.echo()

        click.echo(click.style("Annotation Versions:", bold=True))
        click.echo(f"  Genome Build:       {config.versions.genome_build}")
        click.echo(f"  Annotation Release: {config.versions.annotation_release}")
        click.echo()

        click.echo(click.style("Paths:", bold=True))
        click.echo(f"  Data Directory: {config.data_dir}")
        click.echo(f"  DuckDB Path:    {config.duckdb_path}")
        click.echo(f"  Gene Lengths:   {config.annotation.gene_lengths}")
        click.echo(f"  Gene Symbols:   {config.annotation.gene_symbols}")
        click.echo()

        click.echo(click.style(f"Cohorts ({len(config.cohorts)}):", bold=True))
        for cohort in config.cohorts:
            click.echo(
                f"  {cohort.name}: policy={cohort.policy.value}, "
                f"grouping={cohort.grouping.kind}, counts={cohort.counts}"
            )
        click.echo()
        click.echo(f"Top N: {config.ranking.top_n}")

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


cli.add_command(rank)
cli.add_command(report)


if __name__ == '__main__':
    cli()
