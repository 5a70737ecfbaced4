"""Report command: write top-N candidate reference transcripts per cohort.

Reads each cohort's consensus ranking from DuckDB and writes the top-N rows
as TSV + Parquet with a YAML provenance sidecar, for the plotting layer.
"""

import logging
import sys
from pathlib import Path

import click

from reftx_pipeline.config.loader import load_config, load_config_with_overrides
from reftx_pipeline.persistence import PipelineStore, ProvenanceTracker
from reftx_pipeline.output import write_consensus_output
from reftx_pipeline.ranking import consensus_records, has_cohort, query_top_candidates
from reftx_pipeline.cli.rank_cmd import select_cohorts

logger = logging.getLogger(__name__)


@click.command('report')
@click.option(
    '--cohort',
    'cohort_names',
    multiple=True,
    help='Cohort to report (repeatable; default: all configured cohorts)'
)
@click.option(
    '--top-n',
    type=click.IntRange(min=1),
    default=None,
    help='Number of candidates per cohort (default: ranking.top_n from config)'
)
@click.option(
    '--output-dir',
    type=click.Path(path_type=Path),
    default=None,
    help='Output directory (default: {data_dir}/report)'
)
@click.pass_context
def report(ctx, cohort_names, top_n, output_dir):
    """Write the top-N consensus candidates of each ranked cohort.

    Run this after 'reftx-pipeline rank'. Cohorts that have not been
    ranked yet are reported as missing and cause a non-zero exit.

    Examples:

        # Top 50 (config default) for every cohort
        reftx-pipeline report

        # Top 20 plasma candidates to a custom directory
        reftx-pipeline report --cohort plasma --top-n 20 --output-dir out/
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Candidate Report Generation ===", bold=True))
    click.echo()

    store = None
    try:
        if top_n is not None:
            config = load_config_with_overrides(config_path, {"ranking.top_n": top_n})
        else:
            config = load_config(config_path)
        n = config.ranking.top_n

        try:
            cohorts = select_cohorts(config, cohort_names)
        except KeyError as e:
            click.echo(click.style(f"Error: {e.args[0]}", fg='red'), err=True)
            sys.exit(1)

        if output_dir is None:
            output_dir = Path(config.data_dir) / "report"

        store = PipelineStore.from_config(config)

        missing = []
        for cohort in cohorts:
            click.echo(click.style(f"Cohort: {cohort.name}", bold=True))

            if not has_cohort(store, cohort.name):
                click.echo(click.style(
                    "  No consensus ranking found. Run 'reftx-pipeline rank' first.",
                    fg='yellow'
                ))
                missing.append(cohort.name)
                click.echo()
                continue

            top = query_top_candidates(store, cohort.name, n)
            metadata = {
                "cohort": cohort.name,
                "policy": cohort.policy.value,
                "top_n": n,
                "config_hash": config.config_hash(),
            }
            ranked = ProvenanceTracker.load_from_store(store, cohort.name)
            if ranked is not None:
                # Policy and groups as actually ranked, which may predate config edits
                metadata["policy"] = ranked.policy.value
                metadata["groups"] = list(ranked.partition)
                metadata["ranked_at"] = ranked.ranked_at.isoformat()

            paths = write_consensus_output(
                top,
                output_dir,
                filename_base=f"{cohort.name}_top{n}",
                metadata=metadata,
            )

            for record in consensus_records(top.head(5)):
                click.echo(
                    f"  {record.consensus_rank:>3}. {record.gene_symbol:<12} "
                    f"rank_sum={record.rank_sum} ({record.group_count} groups)"
                )
            click.echo(click.style(f"  TSV:     {paths['tsv']}", fg='green'))
            click.echo(click.style(f"  Parquet: {paths['parquet']}", fg='green'))
            click.echo()

        if missing:
            click.echo(click.style(
                f"Missing consensus for: {', '.join(missing)}",
                fg='red'
            ), err=True)
            sys.exit(1)

        click.echo(click.style("Report generation complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Report command failed: {e}", fg='red'), err=True)
        logger.exception("Report command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
