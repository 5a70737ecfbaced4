"""Rank command: run the reference transcript ranking engine per cohort.

For each configured cohort:
- Reads the count matrix
- Computes RPKM, aggregates replicate groups, collapses symbols
- Ranks genes within groups and computes the rank-sum consensus
- Persists all tables to DuckDB with provenance
"""

import logging
import sys
from pathlib import Path

import click

from reftx_pipeline.config.loader import load_config
from reftx_pipeline.errors import RankingError
from reftx_pipeline.persistence import PipelineStore, ProvenanceTracker
from reftx_pipeline.ranking import (
    classifier_from_config,
    has_cohort,
    load_to_duckdb,
    read_count_matrix,
    read_gene_lengths,
    read_gene_symbols,
    run_cohort,
)

logger = logging.getLogger(__name__)


def select_cohorts(config, names):
    """Return the configured cohorts named in names (all when names is empty)."""
    if not names:
        return list(config.cohorts)
    return [config.get_cohort(name) for name in names]


@click.command('rank')
@click.option(
    '--cohort',
    'cohort_names',
    multiple=True,
    help='Cohort to rank (repeatable; default: all configured cohorts)'
)
@click.option(
    '--force',
    is_flag=True,
    help='Re-rank cohorts even if a consensus checkpoint exists'
)
@click.pass_context
def rank(ctx, cohort_names, force):
    """Rank genes by cross-group expression consensus for each cohort.

    Lookup tables (gene lengths, symbols) are read once and passed to each
    cohort run. A failing cohort aborts the command: no partial ranking is
    persisted for it.

    Supports checkpoint-restart: cohorts with an existing consensus table
    are skipped (use --force to re-run).

    Examples:

        # Rank every configured cohort
        reftx-pipeline rank

        # Re-rank only the plasma cohort
        reftx-pipeline rank --cohort plasma --force
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Reference Transcript Ranking ===", bold=True))
    click.echo()

    store = None
    try:
        click.echo("Loading configuration...")
        config = load_config(config_path)
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))

        try:
            cohorts = select_cohorts(config, cohort_names)
        except KeyError as e:
            click.echo(click.style(f"  Error: {e.args[0]}", fg='red'), err=True)
            sys.exit(1)
        click.echo()

        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)

        click.echo("Reading annotation tables...")
        gene_lengths = read_gene_lengths(config.annotation.gene_lengths)
        gene_symbols = read_gene_symbols(config.annotation.gene_symbols)
        click.echo(click.style(
            f"  {gene_lengths.height} gene lengths, {gene_symbols.height} symbols",
            fg='green'
        ))
        click.echo()

        ranked_count = 0
        for cohort in cohorts:
            click.echo(click.style(f"Cohort: {cohort.name}", bold=True))

            if has_cohort(store, cohort.name) and not force:
                click.echo(click.style(
                    "  Consensus checkpoint exists. Skipping (use --force to re-run).",
                    fg='yellow'
                ))
                click.echo()
                continue

            counts = read_count_matrix(cohort.counts)
            click.echo(f"  {counts.height} genes x {counts.width - 1} samples, policy={cohort.policy.value}")

            try:
                result = run_cohort(
                    cohort=cohort.name,
                    counts=counts,
                    gene_lengths=gene_lengths,
                    gene_symbols=gene_symbols,
                    classifier=classifier_from_config(cohort.grouping),
                    policy=cohort.policy,
                    declared_groups=cohort.declared_groups,
                )
            except RankingError as e:
                click.echo(click.style(f"  Ranking failed: {e}", fg='red'), err=True)
                logger.error("Ranking failed for cohort %s: %s", cohort.name, e)
                sys.exit(1)

            load_to_duckdb(result, store, provenance)
            ranked_count += 1

            click.echo(click.style(
                f"  Ranked {result.consensus.height} symbols across {len(result.partition)} groups",
                fg='green'
            ))
            top = ", ".join(result.consensus["gene_symbol"].head(5).to_list())
            click.echo(f"  Top candidates: {top}")
            click.echo()

        provenance_path = provenance.save_sidecar(Path(config.data_dir) / "ranking" / "ranking")

        click.echo(click.style("=== Summary ===", bold=True))
        click.echo(f"Cohorts ranked: {ranked_count}/{len(cohorts)}")
        click.echo(f"DuckDB Path: {config.duckdb_path}")
        click.echo(f"Provenance: {provenance_path}")
        click.echo()
        click.echo(click.style("Ranking complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Rank command failed: {e}", fg='red'), err=True)
        logger.exception("Rank command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
