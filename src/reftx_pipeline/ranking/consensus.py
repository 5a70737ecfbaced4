"""Cross-group rank-sum consensus for one cohort."""

import polars as pl
import structlog

from reftx_pipeline.errors import InconsistentSymbolError
from reftx_pipeline.ranking.models import (
    CONSENSUS_RANK,
    GENE_ID,
    GENE_SYMBOL,
    GROUP,
    GROUP_COUNT,
    RANK,
    RANK_SUM,
    ConsensusRecord,
)

logger = structlog.get_logger()


def check_symbol_coverage(ranked: pl.DataFrame) -> None:
    """Verify every symbol is ranked in every group.

    Symbol collapsing applied uniformly always yields the same symbol set
    per group; a gap means an upstream stage diverged.

    Raises:
        InconsistentSymbolError: Naming each incomplete symbol and the groups
            it is missing from
    """
    groups = ranked[GROUP].unique(maintain_order=True).to_list()

    present = ranked.group_by(GENE_SYMBOL).agg(pl.col(GROUP).unique())
    incomplete = present.filter(pl.col(GROUP).list.len() < len(groups)).sort(GENE_SYMBOL)
    if incomplete.is_empty():
        return

    missing = {}
    for row in incomplete.iter_rows(named=True):
        seen = set(row[GROUP])
        missing[row[GENE_SYMBOL]] = [g for g in groups if g not in seen]

    logger.error("consensus_inconsistent_symbols", symbol_count=len(missing))
    raise InconsistentSymbolError(missing)


def compute_consensus(ranked: pl.DataFrame) -> pl.DataFrame:
    """Sum each symbol's rank over all groups of a cohort.

    Lower rank_sum means more uniformly high expression. Ties in rank_sum
    are ordered by symbol so the output is reproducible.

    Args:
        ranked: Long ranked table (group, gene_id, gene_symbol, expression, rank)

    Returns:
        DataFrame with gene_id, gene_symbol, rank_sum, group_count and
        consensus_rank, sorted ascending by rank_sum

    Raises:
        InconsistentSymbolError: If any symbol is missing from any group
    """
    check_symbol_coverage(ranked)

    consensus = (
        ranked.group_by(GENE_SYMBOL)
        .agg(
            pl.col(GENE_ID).min(),
            pl.col(RANK).sum().cast(pl.Int64).alias(RANK_SUM),
            pl.col(GROUP).n_unique().cast(pl.Int64).alias(GROUP_COUNT),
        )
        .sort([RANK_SUM, GENE_SYMBOL])
        .with_row_index(CONSENSUS_RANK, offset=1)
        .select(
            GENE_ID,
            GENE_SYMBOL,
            RANK_SUM,
            GROUP_COUNT,
            pl.col(CONSENSUS_RANK).cast(pl.Int64),
        )
    )

    logger.info(
        "consensus_complete",
        symbol_count=consensus.height,
        group_count=consensus[GROUP_COUNT].max() if consensus.height else 0,
        best_symbol=consensus[GENE_SYMBOL][0] if consensus.height else None,
    )

    return consensus


def top_candidates(consensus: pl.DataFrame, n: int) -> pl.DataFrame:
    """Return the first n rows of the consensus ordering.

    Raises:
        ValueError: If n < 1
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    if consensus.is_empty():
        return consensus
    return consensus.sort(CONSENSUS_RANK).head(n)


def consensus_records(consensus: pl.DataFrame) -> list[ConsensusRecord]:
    """Validate consensus rows into ConsensusRecord models."""
    return [
        ConsensusRecord.model_validate(row)
        for row in consensus.select(list(ConsensusRecord.model_fields)).iter_rows(named=True)
    ]
