"""Length- and library-size normalization of raw counts to RPKM."""

import polars as pl
import structlog

from reftx_pipeline.errors import MissingAnnotationError, ZeroLibrarySizeError
from reftx_pipeline.ranking.models import GENE_ID, GENE_LENGTH, RESERVED_COLUMNS, RPKM_SCALE

logger = structlog.get_logger()


def sample_columns(df: pl.DataFrame) -> list[str]:
    """Return the per-sample (or per-group) value columns of a gene-indexed frame."""
    return [col for col in df.columns if col != GENE_ID]


def validate_count_matrix(counts: pl.DataFrame) -> list[str]:
    """Check count matrix shape and values.

    Args:
        counts: DataFrame with gene_id column and one integer column per sample

    Returns:
        List of sample column names

    Raises:
        ValueError: If gene_id is missing or duplicated, there are no samples,
            a sample shadows a gene-level column, or any count is NULL or
            negative
    """
    if GENE_ID not in counts.columns:
        raise ValueError(f"Count matrix must have a '{GENE_ID}' column")

    samples = sample_columns(counts)
    if not samples:
        raise ValueError("Count matrix has no sample columns")

    reserved = [s for s in samples if s in RESERVED_COLUMNS]
    if reserved:
        raise ValueError(f"Sample names clash with reserved column names: {reserved}")

    if counts[GENE_ID].is_duplicated().any():
        duplicated = counts.filter(pl.col(GENE_ID).is_duplicated())[GENE_ID].unique().sort()
        raise ValueError(f"Duplicate gene identifiers in count matrix: {duplicated.to_list()[:10]}")

    invalid = counts.select(
        [
            (pl.col(s).is_null() | (pl.col(s) < 0)).any().alias(s)
            for s in samples
        ]
    ).row(0, named=True)
    bad_samples = [s for s, flag in invalid.items() if flag]
    if bad_samples:
        raise ValueError(f"Counts must be non-negative and non-NULL; offending samples: {bad_samples}")

    return samples


def usable_lengths(gene_lengths: pl.DataFrame) -> pl.DataFrame:
    """Keep only finite, positive gene lengths.

    Raises:
        ValueError: If a gene_id appears more than once in the length table
    """
    if gene_lengths[GENE_ID].is_duplicated().any():
        duplicated = gene_lengths.filter(pl.col(GENE_ID).is_duplicated())[GENE_ID].unique().sort()
        raise ValueError(f"Duplicate gene identifiers in gene length map: {duplicated.to_list()[:10]}")

    lengths = gene_lengths.select(
        pl.col(GENE_ID),
        pl.col(GENE_LENGTH).cast(pl.Float64),
    )
    # NaN compares greater than any number in polars, so is_finite is required
    return lengths.filter(
        pl.col(GENE_LENGTH).is_not_null()
        & pl.col(GENE_LENGTH).is_finite()
        & (pl.col(GENE_LENGTH) > 0)
    )


def find_missing_annotations(counts: pl.DataFrame, usable: pl.DataFrame) -> list[str]:
    """Return genes in the count matrix absent from usable_lengths output, sorted."""
    missing = counts.select(GENE_ID).join(usable.select(GENE_ID), on=GENE_ID, how="anti")
    return sorted(missing[GENE_ID].to_list())


def compute_rpkm(counts: pl.DataFrame, gene_lengths: pl.DataFrame) -> pl.DataFrame:
    """Convert raw counts to reads per kilobase per million mapped reads.

    RPKM[g, s] = count[g, s] * 1e9 / (lib_size[s] * length[g])
    where lib_size[s] is the column sum of counts for sample s.

    No pseudocount is added, so RPKM is zero exactly when the count is zero.
    Annotation coverage and library sizes are checked before any value is
    computed.

    Args:
        counts: Count matrix (gene_id + one integer column per sample)
        gene_lengths: DataFrame with gene_id and gene_length columns

    Returns:
        DataFrame with gene_id and one Float64 RPKM column per sample,
        rows in count matrix order

    Raises:
        MissingAnnotationError: If any gene lacks a positive length
        ZeroLibrarySizeError: If any sample has a total count of zero
        ValueError: If the count matrix is malformed or a gene has more than
            one length row
    """
    samples = validate_count_matrix(counts)

    logger.info("rpkm_start", gene_count=counts.height, sample_count=len(samples))

    usable = usable_lengths(gene_lengths)
    missing = find_missing_annotations(counts, usable)
    if missing:
        logger.error("rpkm_missing_annotation", missing_count=len(missing), genes=missing[:10])
        raise MissingAnnotationError(missing)

    lib_sizes = counts.select([pl.col(s).sum() for s in samples]).row(0, named=True)
    for sample, lib_size in lib_sizes.items():
        if lib_size == 0:
            logger.error("rpkm_zero_library_size", sample=sample)
            raise ZeroLibrarySizeError(sample)

    length_lookup = dict(zip(usable[GENE_ID].to_list(), usable[GENE_LENGTH].to_list()))

    df = counts.with_columns(
        pl.col(GENE_ID).replace_strict(length_lookup, return_dtype=pl.Float64).alias(GENE_LENGTH)
    )

    rpkm = df.select(
        pl.col(GENE_ID),
        *[
            (pl.col(s).cast(pl.Float64) * RPKM_SCALE / (float(lib_sizes[s]) * pl.col(GENE_LENGTH))).alias(s)
            for s in samples
        ],
    )

    logger.info(
        "rpkm_complete",
        gene_count=rpkm.height,
        sample_count=len(samples),
        min_library_size=min(lib_sizes.values()),
        max_library_size=max(lib_sizes.values()),
    )

    return rpkm
