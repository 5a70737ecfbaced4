"""Collapse replicate samples into one expression value per gene per group."""

from typing import Callable

import polars as pl
import structlog

from reftx_pipeline.errors import EmptyGroupError
from reftx_pipeline.ranking.models import GENE_ID, RESERVED_COLUMNS, AggregationPolicy

logger = structlog.get_logger()


def plain_mean(columns: list[str]) -> pl.Expr:
    """Arithmetic mean of the replicate columns."""
    return pl.mean_horizontal([pl.col(c) for c in columns])


def zero_floor_mean(columns: list[str]) -> pl.Expr:
    """Replicate mean, forced to 0 when any replicate is exactly 0.

    A gene counts as detected in a group only if every replicate detects it,
    e.g. replicates [0, 50, 80] give 0, not 43.3.
    """
    any_zero = pl.any_horizontal([pl.col(c) == 0 for c in columns])
    return pl.when(any_zero).then(pl.lit(0.0)).otherwise(plain_mean(columns))


AGGREGATION_POLICIES: dict[AggregationPolicy, Callable[[list[str]], pl.Expr]] = {
    AggregationPolicy.ZERO_FLOOR: zero_floor_mean,
    AggregationPolicy.PLAIN_MEAN: plain_mean,
}


def validate_partition(expression: pl.DataFrame, partition: dict[str, list[str]]) -> None:
    """Reject empty groups, reserved group names and unknown members.

    Raises:
        EmptyGroupError: If any group has no members
        ValueError: If a group is named like a gene-level column, or a member
            sample is not in the expression matrix
    """
    reserved = [group for group in partition if group in RESERVED_COLUMNS]
    if reserved:
        raise ValueError(f"Group names clash with reserved column names: {reserved}")

    for group, members in partition.items():
        if not members:
            logger.error("aggregate_empty_group", group=group)
            raise EmptyGroupError(group)

    available = set(expression.columns) - {GENE_ID}
    unknown = sorted(
        sample for members in partition.values() for sample in members if sample not in available
    )
    if unknown:
        raise ValueError(f"Partition references samples not in expression matrix: {unknown}")


def aggregate_groups(
    expression: pl.DataFrame,
    partition: dict[str, list[str]],
    policy: AggregationPolicy | str = AggregationPolicy.ZERO_FLOOR,
) -> pl.DataFrame:
    """Aggregate per-sample RPKM into one value per gene per group.

    Args:
        expression: Expression matrix (gene_id + one RPKM column per sample)
        partition: Group name -> member sample names
        policy: Aggregation policy, ZERO_FLOOR or PLAIN_MEAN

    Returns:
        DataFrame with gene_id and one Float64 column per group, in
        partition order

    Raises:
        EmptyGroupError: If a group has no members (checked before aggregating)
        ValueError: If a member sample is unknown or the policy is invalid
    """
    policy = AggregationPolicy(policy)
    validate_partition(expression, partition)
    aggregate = AGGREGATION_POLICIES[policy]

    logger.info(
        "aggregate_start",
        policy=policy.value,
        group_count=len(partition),
        gene_count=expression.height,
    )

    grouped = expression.select(
        pl.col(GENE_ID),
        *[aggregate(members).alias(group) for group, members in partition.items()],
    )

    if policy is AggregationPolicy.ZERO_FLOOR:
        # Genes detected in some replicates but floored to zero
        floored = expression.select(
            [
                (
                    pl.any_horizontal([pl.col(c) == 0 for c in members])
                    & pl.any_horizontal([pl.col(c) > 0 for c in members])
                ).sum().alias(group)
                for group, members in partition.items()
            ]
        ).row(0, named=True)
        for group, count in floored.items():
            logger.debug("aggregate_group_zero_floored", group=group, floored_genes=count)

    logger.info("aggregate_complete", policy=policy.value, group_count=len(partition))

    return grouped
