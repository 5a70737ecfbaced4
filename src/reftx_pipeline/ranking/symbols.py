"""Merge gene identifiers that share a symbol."""

import polars as pl
import structlog

from reftx_pipeline.ranking.models import EXPRESSION, GENE_ID, GENE_SYMBOL, GROUP

logger = structlog.get_logger()


def resolve_symbols(gene_ids: pl.DataFrame, gene_symbols: pl.DataFrame) -> pl.DataFrame:
    """Attach a display symbol to every gene identifier.

    Identifiers with a NULL, empty or whitespace-only symbol, and identifiers
    absent from the symbol map, fall back to the identifier itself, so no
    gene is ever dropped.

    Args:
        gene_ids: DataFrame with a gene_id column
        gene_symbols: DataFrame with gene_id and gene_symbol columns

    Returns:
        gene_ids with a non-empty gene_symbol column added
    """
    symbols = (
        gene_symbols.select(
            pl.col(GENE_ID),
            pl.col(GENE_SYMBOL).cast(pl.Utf8).str.strip_chars(),
        )
        .filter(pl.col(GENE_SYMBOL).is_not_null() & (pl.col(GENE_SYMBOL) != ""))
        .unique(subset=GENE_ID, keep="first", maintain_order=True)
    )
    lookup = dict(zip(symbols[GENE_ID].to_list(), symbols[GENE_SYMBOL].to_list()))

    resolved = gene_ids.with_columns(
        pl.col(GENE_ID)
        .replace_strict(lookup, default=pl.col(GENE_ID), return_dtype=pl.Utf8)
        .alias(GENE_SYMBOL)
    )

    fallback_count = resolved.filter(pl.col(GENE_SYMBOL) == pl.col(GENE_ID)).height
    if fallback_count:
        logger.info("symbol_fallback_to_identifier", gene_count=fallback_count)

    return resolved


def collapse_symbols(group_expression: pl.DataFrame, gene_symbols: pl.DataFrame) -> pl.DataFrame:
    """Collapse gene-level group expression to one row per symbol per group.

    Expression of all identifiers sharing a symbol is SUMMED (not averaged),
    merging isoform/locus redundancy into one signal. Total expression per
    group is conserved. The retained gene_id is the smallest identifier
    mapped to the symbol.

    Args:
        group_expression: gene_id + one expression column per group (or sample)
        gene_symbols: DataFrame with gene_id and gene_symbol columns

    Returns:
        Long DataFrame with columns group, gene_id, gene_symbol, expression;
        one row per (group, gene_symbol), sorted by group order then symbol
    """
    groups = [c for c in group_expression.columns if c != GENE_ID]

    logger.info(
        "symbol_collapse_start",
        gene_count=group_expression.height,
        group_count=len(groups),
    )

    with_symbols = resolve_symbols(group_expression, gene_symbols)

    long = with_symbols.unpivot(
        on=groups,
        index=[GENE_ID, GENE_SYMBOL],
        variable_name=GROUP,
        value_name=EXPRESSION,
    )

    group_order = pl.DataFrame(
        {GROUP: groups, "_group_order": list(range(len(groups)))},
        schema={GROUP: pl.Utf8, "_group_order": pl.Int64},
    )

    collapsed = (
        long.group_by([GROUP, GENE_SYMBOL])
        .agg(
            pl.col(GENE_ID).min(),
            pl.col(EXPRESSION).sum(),
        )
        .join(group_order, on=GROUP, how="left")
        .sort(["_group_order", GENE_SYMBOL])
        .select(GROUP, GENE_ID, GENE_SYMBOL, EXPRESSION)
    )

    symbol_count = collapsed.filter(pl.col(GROUP) == groups[0]).height if groups else 0
    logger.info(
        "symbol_collapse_complete",
        gene_count=group_expression.height,
        symbol_count=symbol_count,
        merged_identifiers=group_expression.height - symbol_count,
    )

    return collapsed
