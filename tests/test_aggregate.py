"""Tests for replicate aggregation policies."""

import polars as pl
import pytest

from reftx_pipeline.errors import EmptyGroupError
from reftx_pipeline.ranking.aggregate import aggregate_groups
from reftx_pipeline.ranking.models import AggregationPolicy


@pytest.fixture
def expression():
    return pl.DataFrame({
        "gene_id": ["G1", "G2", "G3"],
        "A_1": [0.0, 0.0, 10.0],
        "A_2": [50.0, 0.0, 20.0],
        "A_3": [80.0, 0.0, 30.0],
        "B_1": [0.0, 4.0, 1.0],
        "B_2": [100.0, 6.0, 3.0],
    })


@pytest.fixture
def partition():
    return {"A": ["A_1", "A_2", "A_3"], "B": ["B_1", "B_2"]}


def test_zero_floor_any_zero_gives_zero(expression, partition):
    """[0, 50, 80] collapses to 0, not the mean."""
    grouped = aggregate_groups(expression, partition, AggregationPolicy.ZERO_FLOOR)

    assert grouped.columns == ["gene_id", "A", "B"]
    assert grouped["A"].to_list() == pytest.approx([0.0, 0.0, 20.0])
    assert grouped["B"].to_list() == pytest.approx([0.0, 5.0, 2.0])


def test_plain_mean(expression, partition):
    """[0, 100] averages to 50."""
    grouped = aggregate_groups(expression, partition, AggregationPolicy.PLAIN_MEAN)

    assert grouped["A"].to_list() == pytest.approx([130.0 / 3, 0.0, 20.0])
    assert grouped["B"].to_list() == pytest.approx([50.0, 5.0, 2.0])


def test_plain_mean_three_replicates():
    """[0, 50, 100] averages to exactly 50."""
    expression = pl.DataFrame({"gene_id": ["G1"], "R1": [0.0], "R2": [50.0], "R3": [100.0]})
    grouped = aggregate_groups(expression, {"R": ["R1", "R2", "R3"]}, AggregationPolicy.PLAIN_MEAN)
    assert grouped["R"][0] == 50.0


def test_policy_accepts_string(expression, partition):
    grouped = aggregate_groups(expression, partition, "plain_mean")
    assert grouped["B"][0] == pytest.approx(50.0)


def test_unknown_policy_rejected(expression, partition):
    with pytest.raises(ValueError):
        aggregate_groups(expression, partition, "median")


def test_single_member_group_is_identity(expression):
    grouped = aggregate_groups(expression, {"A": ["A_2"]}, AggregationPolicy.ZERO_FLOOR)
    assert grouped["A"].to_list() == expression["A_2"].to_list()


def test_empty_group_raises(expression, partition):
    partition["C"] = []

    with pytest.raises(EmptyGroupError) as exc_info:
        aggregate_groups(expression, partition)

    assert exc_info.value.group == "C"


def test_unknown_member_rejected(expression):
    with pytest.raises(ValueError, match="MISSING_1"):
        aggregate_groups(expression, {"A": ["A_1", "MISSING_1"]})


def test_zero_floor_never_exceeds_plain_mean(expression, partition):
    floored = aggregate_groups(expression, partition, AggregationPolicy.ZERO_FLOOR)
    mean = aggregate_groups(expression, partition, AggregationPolicy.PLAIN_MEAN)

    for group in partition:
        assert (floored[group] <= mean[group]).all()


def test_reserved_group_name_rejected(expression):
    with pytest.raises(ValueError, match="reserved column names"):
        aggregate_groups(expression, {"gene_symbol": ["A_1", "A_2"], "B": ["B_1"]})
