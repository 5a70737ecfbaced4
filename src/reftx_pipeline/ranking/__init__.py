"""Reference transcript ranking engine.

Turns per-sample gene counts into a cross-group consensus ordering of genes
by expression robustness and abundance:

- normalize: counts -> RPKM
- aggregate: replicates -> one value per group (zero-floor or plain mean)
- symbols: gene identifiers -> summed per-symbol expression
- rank: within-group ranks, zero rows sharing the smallest zero rank
- consensus: rank-sum across groups, ascending

Each cohort (cell lines, a biofluid, plasma) runs through run_cohort
independently.
"""

from reftx_pipeline.ranking.models import (
    AggregationPolicy,
    ConsensusRecord,
    CONSENSUS_TABLE_NAME,
    RANKED_TABLE_NAME,
)
from reftx_pipeline.ranking.normalize import compute_rpkm
from reftx_pipeline.ranking.grouping import (
    ReplicateSuffixClassifier,
    IdentityClassifier,
    MappingClassifier,
    build_partition,
    classifier_from_config,
)
from reftx_pipeline.ranking.aggregate import (
    AGGREGATION_POLICIES,
    aggregate_groups,
    plain_mean,
    zero_floor_mean,
)
from reftx_pipeline.ranking.symbols import collapse_symbols, resolve_symbols
from reftx_pipeline.ranking.rank import collapse_zero_ranks, rank_genes, rank_groups
from reftx_pipeline.ranking.consensus import (
    compute_consensus,
    consensus_records,
    top_candidates,
)
from reftx_pipeline.ranking.pipeline import CohortResult, run_cohort
from reftx_pipeline.ranking.inputs import (
    read_count_matrix,
    read_gene_lengths,
    read_gene_symbols,
)
from reftx_pipeline.ranking.load import (
    has_cohort,
    load_to_duckdb,
    query_consensus,
    query_top_candidates,
)

__all__ = [
    "AggregationPolicy",
    "ConsensusRecord",
    "CONSENSUS_TABLE_NAME",
    "RANKED_TABLE_NAME",
    "compute_rpkm",
    "ReplicateSuffixClassifier",
    "IdentityClassifier",
    "MappingClassifier",
    "build_partition",
    "classifier_from_config",
    "AGGREGATION_POLICIES",
    "aggregate_groups",
    "plain_mean",
    "zero_floor_mean",
    "collapse_symbols",
    "resolve_symbols",
    "collapse_zero_ranks",
    "rank_genes",
    "rank_groups",
    "compute_consensus",
    "consensus_records",
    "top_candidates",
    "CohortResult",
    "run_cohort",
    "read_count_matrix",
    "read_gene_lengths",
    "read_gene_symbols",
    "has_cohort",
    "load_to_duckdb",
    "query_consensus",
    "query_top_candidates",
]
