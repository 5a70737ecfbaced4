"""Pluggable sample -> group classifiers.

Groups are derived from sample naming conventions, which differ between
cohorts. The ranking engine only consumes the resulting partition, so a new
naming scheme needs a new classifier and nothing else.
"""

import re

import structlog

logger = structlog.get_logger()

DEFAULT_REPLICATE_PATTERN = r"[_.-]?\d+$"


class ReplicateSuffixClassifier:
    """Assign a sample to the group named by stripping its replicate index.

    With the default pattern "HEK293_1" and "HEK293-2" both map to "HEK293".
    The separator is optional, so "urine3" maps to "urine" but "HEK2933"
    maps to "HEK". Use a pattern with a required separator (e.g. ``_\\d+$``)
    when group names themselves end in digits.
    """

    def __init__(self, pattern: str = DEFAULT_REPLICATE_PATTERN):
        self.pattern = pattern
        self._regex = re.compile(pattern)

    def __call__(self, sample: str) -> str:
        group = self._regex.sub("", sample, count=1)
        # A name made only of the suffix keeps its own name
        return group or sample

    def __repr__(self) -> str:
        return f"ReplicateSuffixClassifier(pattern={self.pattern!r})"


class IdentityClassifier:
    """Treat every sample as its own group (per-sample ranking)."""

    def __call__(self, sample: str) -> str:
        return sample

    def __repr__(self) -> str:
        return "IdentityClassifier()"


class MappingClassifier:
    """Look groups up in an explicit sample -> group mapping."""

    def __init__(self, mapping: dict[str, str]):
        self.mapping = dict(mapping)

    def __call__(self, sample: str) -> str:
        try:
            return self.mapping[sample]
        except KeyError:
            raise ValueError(f"Sample '{sample}' has no group in the sample mapping") from None

    def __repr__(self) -> str:
        return f"MappingClassifier({len(self.mapping)} samples)"


def classifier_from_config(grouping: "GroupingConfig"):
    """Build a sample classifier from a GroupingConfig."""
    if grouping.kind == "replicate_suffix":
        return ReplicateSuffixClassifier(grouping.pattern)
    if grouping.kind == "identity":
        return IdentityClassifier()
    if grouping.kind == "mapping":
        return MappingClassifier(grouping.mapping)
    raise ValueError(f"Unknown grouping kind: {grouping.kind}")


def build_partition(
    samples: list[str],
    classifier,
    declared_groups: list[str] | None = None,
) -> dict[str, list[str]]:
    """Partition sample names into named groups.

    Args:
        samples: Sample names, in count matrix column order
        classifier: Callable mapping a sample name to its group name
        declared_groups: Groups expected to exist. They come first, in the
            given order, and are kept even when no sample maps to them, so
            the aggregator can report them as empty.

    Returns:
        Dict of group name -> member samples. Groups keep first-appearance
        order, and members keep sample order.
    """
    partition: dict[str, list[str]] = {group: [] for group in (declared_groups or [])}

    for sample in samples:
        partition.setdefault(classifier(sample), []).append(sample)

    logger.info(
        "partition_built",
        classifier=repr(classifier),
        sample_count=len(samples),
        group_count=len(partition),
        group_sizes={group: len(members) for group, members in partition.items()},
    )

    return partition
