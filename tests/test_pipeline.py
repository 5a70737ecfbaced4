"""End-to-end tests for a single cohort run."""

import polars as pl
import pytest
from polars.testing import assert_frame_equal

from reftx_pipeline.errors import (
    EmptyGroupError,
    MissingAnnotationError,
    RankingError,
    ZeroLibrarySizeError,
)
from reftx_pipeline.ranking import (
    AggregationPolicy,
    IdentityClassifier,
    ReplicateSuffixClassifier,
    run_cohort,
)


def test_zero_floor_consensus(counts, gene_lengths, gene_symbols):
    """SPOR drops out of one HEK replicate and is floored to zero for HEK."""
    result = run_cohort(
        "cell_lines", counts, gene_lengths, gene_symbols,
        classifier=ReplicateSuffixClassifier(),
        policy=AggregationPolicy.ZERO_FLOOR,
    )

    assert result.partition == {"HEK": ["HEK_1", "HEK_2"], "HeLa": ["HeLa_1", "HeLa_2"]}

    consensus = result.consensus
    assert consensus["gene_symbol"].to_list() == ["ACTB", "GAPDH", "ENSG0005", "SPOR", "OFF"]
    assert consensus["rank_sum"].to_list() == [2, 4, 7, 7, 9]
    assert consensus["group_count"].to_list() == [2] * 5
    assert consensus["consensus_rank"].to_list() == [1, 2, 3, 4, 5]

    gapdh = consensus.filter(pl.col("gene_symbol") == "GAPDH")
    assert gapdh["gene_id"][0] == "ENSG0002"


def test_zero_floor_shared_zero_rank(counts, gene_lengths, gene_symbols):
    result = run_cohort(
        "cell_lines", counts, gene_lengths, gene_symbols,
        classifier=ReplicateSuffixClassifier(),
    )
    hek = result.ranked.filter(pl.col("group") == "HEK")

    assert hek["gene_symbol"].to_list() == ["ACTB", "GAPDH", "ENSG0005", "OFF", "SPOR"]
    assert hek["rank"].to_list() == [1, 2, 3, 4, 4]


def test_plain_mean_consensus(counts, gene_lengths, gene_symbols):
    """Under plain mean the HEK dropout only lowers SPOR's mean."""
    result = run_cohort(
        "plasma", counts, gene_lengths, gene_symbols,
        classifier=ReplicateSuffixClassifier(),
        policy="plain_mean",
    )

    assert result.policy is AggregationPolicy.PLAIN_MEAN
    assert result.consensus["gene_symbol"].to_list() == ["ACTB", "GAPDH", "SPOR", "ENSG0005", "OFF"]
    assert result.consensus["rank_sum"].to_list() == [2, 4, 6, 8, 10]


def test_per_sample_ranking(counts, gene_lengths, gene_symbols):
    """Identity grouping ranks every sample as its own group."""
    result = run_cohort(
        "cell_lines", counts, gene_lengths, gene_symbols,
        classifier=IdentityClassifier(),
    )

    assert list(result.partition) == ["HEK_1", "HEK_2", "HeLa_1", "HeLa_2"]
    assert result.consensus["group_count"].to_list() == [4] * 5
    assert result.consensus["gene_symbol"][0] == "ACTB"
    assert result.consensus["rank_sum"][0] == 4


def test_intermediate_tables(counts, gene_lengths, gene_symbols):
    result = run_cohort(
        "cell_lines", counts, gene_lengths, gene_symbols,
        classifier=ReplicateSuffixClassifier(),
    )

    assert result.expression.columns == ["gene_id", "HEK_1", "HEK_2", "HeLa_1", "HeLa_2"]
    assert result.group_expression.columns == ["gene_id", "HEK", "HeLa"]
    assert result.ranked.height == 10
    assert result.ranked.columns == ["group", "gene_id", "gene_symbol", "expression", "rank"]


def test_deterministic(counts, gene_lengths, gene_symbols):
    kwargs = dict(classifier=ReplicateSuffixClassifier(), policy=AggregationPolicy.ZERO_FLOOR)
    first = run_cohort("cell_lines", counts, gene_lengths, gene_symbols, **kwargs)
    second = run_cohort("cell_lines", counts, gene_lengths, gene_symbols, **kwargs)

    assert_frame_equal(first.consensus, second.consensus)
    assert_frame_equal(first.ranked, second.ranked)


def test_row_order_does_not_change_result(counts, gene_lengths, gene_symbols):
    classifier = ReplicateSuffixClassifier()
    forward = run_cohort("cell_lines", counts, gene_lengths, gene_symbols, classifier)
    reverse = run_cohort("cell_lines", counts.reverse(), gene_lengths.reverse(), gene_symbols, classifier)

    assert_frame_equal(forward.consensus, reverse.consensus)


def test_missing_annotation_tagged_with_cohort(counts, gene_lengths, gene_symbols):
    lengths = gene_lengths.filter(pl.col("gene_id") != "ENSG0004")

    with pytest.raises(MissingAnnotationError) as exc_info:
        run_cohort("urine", counts, lengths, gene_symbols, ReplicateSuffixClassifier())

    assert exc_info.value.cohort == "urine"
    assert exc_info.value.genes == ["ENSG0004"]
    assert str(exc_info.value).startswith("[cohort=urine]")


def test_empty_declared_group(counts, gene_lengths, gene_symbols):
    with pytest.raises(EmptyGroupError) as exc_info:
        run_cohort(
            "cell_lines", counts, gene_lengths, gene_symbols,
            ReplicateSuffixClassifier(),
            declared_groups=["HEK", "HeLa", "A549"],
        )

    assert exc_info.value.group == "A549"
    assert exc_info.value.cohort == "cell_lines"


def test_zero_library_size_is_empty_group(counts, gene_lengths, gene_symbols):
    counts = counts.with_columns(pl.lit(0).cast(pl.Int64).alias("A549_1"))

    with pytest.raises(EmptyGroupError) as exc_info:
        run_cohort("cell_lines", counts, gene_lengths, gene_symbols, ReplicateSuffixClassifier())

    assert isinstance(exc_info.value, ZeroLibrarySizeError)
    assert isinstance(exc_info.value, RankingError)
    assert exc_info.value.sample == "A549_1"


def test_group_named_like_symbol_column_rejected(counts, gene_lengths, gene_symbols):
    """Replicates gene_symbol_1/_2 would form a group shadowing gene_symbol."""
    counts = counts.rename({"HEK_1": "gene_symbol_1", "HEK_2": "gene_symbol_2"})

    with pytest.raises(ValueError, match="reserved column names"):
        run_cohort("cell_lines", counts, gene_lengths, gene_symbols, ReplicateSuffixClassifier())
