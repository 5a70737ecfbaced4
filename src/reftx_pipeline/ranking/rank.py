"""Within-group expression ranking with the shared zero-rank tie-break."""

import polars as pl
import structlog

from reftx_pipeline.ranking.models import EXPRESSION, GENE_SYMBOL, GROUP, RANK

logger = structlog.get_logger()


def collapse_zero_ranks(ranked: pl.DataFrame) -> pl.DataFrame:
    """Give every zero-expression row the smallest rank held by a zero row.

    Undetected genes all share the best rank any of them received in the
    sequential pass instead of spreading over (or piling onto) the worst
    ranks. For expressions [100, 50, 0, 0, 0] the ranks become
    [1, 2, 3, 3, 3], not [1, 2, 3, 4, 5] or [1, 2, 5, 5, 5].

    Args:
        ranked: Single-group table with expression and sequential rank columns

    Returns:
        Table with the rank column rewritten for zero rows
    """
    is_zero = pl.col(EXPRESSION) == 0
    return ranked.with_columns(
        pl.when(is_zero)
        .then(pl.col(RANK).filter(is_zero).min())
        .otherwise(pl.col(RANK))
        .alias(RANK)
    )


def rank_genes(table: pl.DataFrame) -> pl.DataFrame:
    """Rank the symbols of one group (or sample), 1 = highest expression.

    Rows are sorted by expression descending, then by symbol so equal
    non-zero values get a reproducible order, and numbered 1..K. Zero rows
    are then collapsed onto a shared rank by collapse_zero_ranks; if every
    row is zero they all get rank 1.

    Args:
        table: Symbol-collapsed table for a single group, with at least
            gene_symbol and expression columns

    Returns:
        Table sorted by rank with an Int64 rank column appended
    """
    ranked = (
        table.sort([EXPRESSION, GENE_SYMBOL], descending=[True, False])
        .with_row_index(RANK, offset=1)
        .with_columns(pl.col(RANK).cast(pl.Int64))
    )
    ranked = collapse_zero_ranks(ranked)
    # Move rank to the end to match the other long-form tables
    return ranked.select([c for c in ranked.columns if c != RANK] + [RANK])


def rank_groups(collapsed: pl.DataFrame) -> pl.DataFrame:
    """Rank every group of a symbol-collapsed long table independently.

    Args:
        collapsed: Output of collapse_symbols (group, gene_id, gene_symbol,
            expression)

    Returns:
        Concatenated ranked tables, groups in input order
    """
    groups = collapsed.partition_by(GROUP, maintain_order=True)

    ranked_tables = []
    for table in groups:
        ranked = rank_genes(table)
        zero_rows = ranked.filter(pl.col(EXPRESSION) == 0).height
        logger.debug(
            "rank_group_complete",
            group=ranked[GROUP][0],
            symbol_count=ranked.height,
            zero_rows=zero_rows,
            shared_zero_rank=ranked.filter(pl.col(EXPRESSION) == 0)[RANK].min() if zero_rows else None,
        )
        ranked_tables.append(ranked)

    if not ranked_tables:
        return collapsed.with_columns(pl.lit(None, dtype=pl.Int64).alias(RANK))

    result = pl.concat(ranked_tables)
    logger.info("rank_complete", group_count=len(ranked_tables), row_count=result.height)
    return result
