"""Load cohort ranking results to DuckDB with provenance tracking."""

import duckdb
import polars as pl
import structlog

from reftx_pipeline.ranking.consensus import top_candidates
from reftx_pipeline.ranking.models import (
    COHORT,
    CONSENSUS_RANK,
    CONSENSUS_TABLE_NAME,
    EXPRESSION,
    GENE_SYMBOL,
    RANK_SUM,
    RANKED_TABLE_NAME,
    RPKM_TABLE_PREFIX,
)
from reftx_pipeline.ranking.pipeline import CohortResult

logger = structlog.get_logger()


def rpkm_table_name(cohort: str) -> str:
    """Per-cohort table holding the wide RPKM matrix.

    DuckDB identifiers are case-insensitive, so the name is lowercased;
    cohort names are unique ignoring case.
    """
    return f"{RPKM_TABLE_PREFIX}_{cohort.lower()}"


def load_to_duckdb(
    result: CohortResult,
    store: "PipelineStore",
    provenance: "ProvenanceTracker",
    description: str = "",
) -> None:
    """Save one cohort's expression, ranked and consensus tables to DuckDB.

    ranked_genes and consensus_ranking are shared across cohorts and
    partitioned by a cohort column; re-loading a cohort replaces only its
    rows (idempotent). The RPKM matrix has sample-specific columns, so it is
    stored in its own rpkm_<cohort> table.

    All tables, checkpoints and the cohort's provenance row are written in
    one transaction: a failed load leaves the previous state of the cohort
    untouched.

    Args:
        result: CohortResult from run_cohort
        store: PipelineStore instance for DuckDB persistence
        provenance: ProvenanceTracker instance for metadata recording
        description: Optional description for checkpoint metadata
    """
    cohort = result.cohort
    logger.info("ranking_load_start", cohort=cohort, symbol_count=result.consensus.height)

    zero_rows = result.ranked.filter(pl.col(EXPRESSION) == 0).height

    store.conn.begin()
    try:
        store.save_dataframe(
            df=result.expression,
            table_name=rpkm_table_name(cohort),
            description=f"RPKM matrix for cohort {cohort}",
            replace=True,
        )

        store.replace_partition(
            df=result.ranked.select(pl.lit(cohort).alias(COHORT), pl.all()),
            table_name=RANKED_TABLE_NAME,
            key_column=COHORT,
            key_value=cohort,
            description=description or "Per-group ranked genes with shared zero rank",
        )

        store.replace_partition(
            df=result.consensus.select(pl.lit(cohort).alias(COHORT), pl.all()),
            table_name=CONSENSUS_TABLE_NAME,
            key_column=COHORT,
            key_value=cohort,
            description=description or "Cross-group rank-sum consensus",
        )

        provenance.record_cohort(
            cohort=cohort,
            policy=result.policy,
            partition=result.partition,
            symbol_count=result.consensus.height,
            details={
                "sample_count": sum(len(members) for members in result.partition.values()),
                "zero_expression_rows": zero_rows,
                "best_rank_sum": int(result.consensus[RANK_SUM].min()) if result.consensus.height else None,
                "top_symbols": result.consensus[GENE_SYMBOL].head(10).to_list(),
            },
        )
        provenance.save_to_store(store, cohorts=[cohort])
    except Exception:
        store.conn.rollback()
        logger.error("ranking_load_rolled_back", cohort=cohort)
        raise
    store.conn.commit()

    logger.info(
        "ranking_load_complete",
        cohort=cohort,
        ranked_rows=result.ranked.height,
        consensus_rows=result.consensus.height,
        zero_rows=zero_rows,
    )


def has_cohort(store: "PipelineStore", cohort: str) -> bool:
    """True if the cohort's consensus ranking is checkpointed."""
    return store.has_checkpoint(CONSENSUS_TABLE_NAME, partition_key=cohort)


def query_consensus(store: "PipelineStore", cohort: str) -> pl.DataFrame:
    """Read a cohort's full consensus ordering from DuckDB.

    Returns:
        DataFrame without the cohort column, sorted by consensus_rank
        (empty if the cohort was never loaded)
    """
    try:
        return store.execute_query(
            f"""
            SELECT * EXCLUDE ({COHORT})
            FROM {CONSENSUS_TABLE_NAME}
            WHERE {COHORT} = ?
            ORDER BY {CONSENSUS_RANK}
            """,
            params=[cohort],
        )
    except duckdb.CatalogException:
        # Nothing has been ranked into this store yet
        return pl.DataFrame()


def query_top_candidates(store: "PipelineStore", cohort: str, n: int) -> pl.DataFrame:
    """Read the top n candidate reference transcripts for a cohort.

    Args:
        store: PipelineStore instance
        cohort: Cohort name
        n: Number of rows (>= 1)

    Returns:
        DataFrame with gene_id, gene_symbol, rank_sum, group_count and
        consensus_rank, lowest rank_sum first
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")

    logger.info("ranking_query_top", cohort=cohort, n=n)
    result = top_candidates(query_consensus(store, cohort), n)
    logger.info("ranking_query_complete", cohort=cohort, result_count=result.height)
    return result
