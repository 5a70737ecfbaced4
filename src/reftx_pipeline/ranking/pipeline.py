"""End-to-end ranking of one cohort: counts -> consensus ordering."""

from dataclasses import dataclass

import polars as pl
import structlog

from reftx_pipeline.errors import RankingError
from reftx_pipeline.ranking.aggregate import aggregate_groups
from reftx_pipeline.ranking.consensus import compute_consensus
from reftx_pipeline.ranking.grouping import build_partition
from reftx_pipeline.ranking.models import GENE_SYMBOL, AggregationPolicy
from reftx_pipeline.ranking.normalize import compute_rpkm, sample_columns
from reftx_pipeline.ranking.rank import rank_groups
from reftx_pipeline.ranking.symbols import collapse_symbols

logger = structlog.get_logger()


@dataclass(frozen=True)
class CohortResult:
    """Every stage output for one cohort run.

    Attributes:
        cohort: Cohort name
        policy: Aggregation policy used
        partition: Group name -> member samples
        expression: Per-sample RPKM matrix
        group_expression: Per-group aggregated expression (gene level)
        ranked: Long ranked table, one row per (group, symbol)
        consensus: Consensus ordering by ascending rank_sum
    """

    cohort: str
    policy: AggregationPolicy
    partition: dict[str, list[str]]
    expression: pl.DataFrame
    group_expression: pl.DataFrame
    ranked: pl.DataFrame
    consensus: pl.DataFrame


def run_cohort(
    cohort: str,
    counts: pl.DataFrame,
    gene_lengths: pl.DataFrame,
    gene_symbols: pl.DataFrame,
    classifier,
    policy: AggregationPolicy | str = AggregationPolicy.ZERO_FLOOR,
    declared_groups: list[str] | None = None,
) -> CohortResult:
    """Run normalization, aggregation, collapsing, ranking and consensus.

    Stateless: the lookup tables are passed in on every call and nothing is
    kept between cohorts, so cohorts can be run in any order or in parallel.

    Composes: compute RPKM -> partition samples -> aggregate groups ->
    collapse symbols -> rank groups -> rank-sum consensus

    Args:
        cohort: Cohort name, used for logging and error reporting
        counts: Count matrix (gene_id + one integer column per sample)
        gene_lengths: gene_id -> gene_length lookup
        gene_symbols: gene_id -> gene_symbol lookup
        classifier: Callable mapping sample name -> group name
        policy: Replicate aggregation policy
        declared_groups: Groups that must have members

    Returns:
        CohortResult with every intermediate table

    Raises:
        MissingAnnotationError, EmptyGroupError, InconsistentSymbolError:
            Tagged with the cohort name; no partial result is returned
    """
    policy = AggregationPolicy(policy)
    log = logger.bind(cohort=cohort)
    log.info("cohort_pipeline_start", gene_count=counts.height, policy=policy.value)

    try:
        expression = compute_rpkm(counts, gene_lengths)
        partition = build_partition(sample_columns(expression), classifier, declared_groups)
        group_expression = aggregate_groups(expression, partition, policy)
        collapsed = collapse_symbols(group_expression, gene_symbols)
        ranked = rank_groups(collapsed)
        consensus = compute_consensus(ranked)
    except RankingError as e:
        e.cohort = cohort
        log.error("cohort_pipeline_failed", error_type=type(e).__name__, error=e.message)
        raise

    log.info(
        "cohort_pipeline_complete",
        sample_count=len(sample_columns(expression)),
        group_count=len(partition),
        symbol_count=consensus.height,
        top_symbols=consensus[GENE_SYMBOL].head(5).to_list(),
    )

    return CohortResult(
        cohort=cohort,
        policy=policy,
        partition=partition,
        expression=expression,
        group_expression=group_expression,
        ranked=ranked,
        consensus=consensus,
    )
