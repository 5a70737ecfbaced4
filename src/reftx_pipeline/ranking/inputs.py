"""Read count matrices and gene lookup tables from tab-separated files."""

from pathlib import Path

import polars as pl
import structlog

from reftx_pipeline.ranking.models import GENE_ID, GENE_LENGTH, GENE_SYMBOL

logger = structlog.get_logger()


def _read_tsv(path: Path | str, **kwargs) -> pl.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    return pl.read_csv(path, separator="\t", **kwargs)


def _rename_leading(df: pl.DataFrame, names: list[str], path: Path | str) -> pl.DataFrame:
    if df.width < len(names):
        raise ValueError(f"{path}: expected at least {len(names)} columns, found {df.width}")
    return df.rename(dict(zip(df.columns[: len(names)], names)))


def read_count_matrix(path: Path | str) -> pl.DataFrame:
    """Read a genes x samples count matrix.

    The first column holds gene identifiers and is renamed to gene_id; every
    other column is a sample and is cast to Int64.

    Args:
        path: TSV file with a header row

    Returns:
        Count matrix DataFrame
    """
    df = _read_tsv(path, infer_schema_length=10000)
    df = _rename_leading(df, [GENE_ID], path)
    samples = df.columns[1:]
    df = df.with_columns(
        pl.col(GENE_ID).cast(pl.Utf8),
        *[pl.col(s).cast(pl.Int64) for s in samples],
    )
    logger.info("count_matrix_read", path=str(path), gene_count=df.height, sample_count=len(samples))
    return df


def read_gene_lengths(path: Path | str) -> pl.DataFrame:
    """Read a gene_id -> effective length table (first two columns)."""
    df = _read_tsv(path)
    df = _rename_leading(df, [GENE_ID, GENE_LENGTH], path).select(
        pl.col(GENE_ID).cast(pl.Utf8),
        pl.col(GENE_LENGTH).cast(pl.Float64),
    )
    logger.info("gene_lengths_read", path=str(path), gene_count=df.height)
    return df


def read_gene_symbols(path: Path | str) -> pl.DataFrame:
    """Read a gene_id -> symbol table (first two columns); symbols may be empty."""
    df = _read_tsv(path, infer_schema_length=0)
    df = _rename_leading(df, [GENE_ID, GENE_SYMBOL], path).select(
        pl.col(GENE_ID),
        pl.col(GENE_SYMBOL),
    )
    logger.info(
        "gene_symbols_read",
        path=str(path),
        gene_count=df.height,
        missing_symbols=df[GENE_SYMBOL].null_count(),
    )
    return df
