"""Data models and column conventions for the ranking engine."""

from enum import Enum

from pydantic import BaseModel

# Column names shared across pipeline stages
GENE_ID = "gene_id"
GENE_SYMBOL = "gene_symbol"
GENE_LENGTH = "gene_length"
GROUP = "group"
EXPRESSION = "expression"
RANK = "rank"
RANK_SUM = "rank_sum"
GROUP_COUNT = "group_count"
CONSENSUS_RANK = "consensus_rank"
COHORT = "cohort"

# Gene-level columns that sample and group names must not shadow
RESERVED_COLUMNS = (GENE_ID, GENE_SYMBOL, GENE_LENGTH)

# Table names in DuckDB
RANKED_TABLE_NAME = "ranked_genes"
CONSENSUS_TABLE_NAME = "consensus_ranking"
RPKM_TABLE_PREFIX = "rpkm"

# Scaling factor for reads per kilobase per million mapped reads
RPKM_SCALE = 1e9


class AggregationPolicy(str, Enum):
    """How replicate RPKM values collapse into one value per group.

    ZERO_FLOOR: a gene is zero for the group if any replicate is zero,
        otherwise the replicate mean. Used for cell-line and biofluid cohorts.
    PLAIN_MEAN: arithmetic mean of the replicates. Used for plasma cohorts,
        where replicate dropout is sampling noise.
    """

    ZERO_FLOOR = "zero_floor"
    PLAIN_MEAN = "plain_mean"


class ConsensusRecord(BaseModel):
    """One row of a cohort's consensus table.

    Attributes:
        gene_id: Gene identifier carried through symbol collapsing
        gene_symbol: Gene symbol
        rank_sum: Sum of within-group ranks across the cohort
        group_count: Number of groups contributing a rank
        consensus_rank: 1-based position in ascending rank_sum order
    """

    gene_id: str
    gene_symbol: str
    rank_sum: int
    group_count: int
    consensus_rank: int
