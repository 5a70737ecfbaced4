"""Dual-format TSV+Parquet writer with provenance sidecar."""

from datetime import datetime, timezone
from pathlib import Path

import polars as pl
import yaml

from reftx_pipeline.ranking.models import CONSENSUS_RANK, GENE_SYMBOL, RANK_SUM


def write_consensus_output(
    df: pl.DataFrame | pl.LazyFrame,
    output_dir: Path,
    filename_base: str = "reference_candidates",
    metadata: dict | None = None,
) -> dict:
    """
    Write a consensus ranking to TSV and Parquet with a YAML provenance sidecar.

    Both formats hold identical data for downstream plotting tools.

    Args:
        df: Polars DataFrame or LazyFrame with consensus rows
            (gene_id, gene_symbol, rank_sum, group_count, consensus_rank)
        output_dir: Directory to write output files (created if doesn't exist)
        filename_base: Base filename without extension
        metadata: Extra key/values recorded in the sidecar (cohort, top_n, ...)

    Returns:
        Dictionary with output file paths:
        {
            "tsv": Path to TSV file,
            "parquet": Path to Parquet file,
            "provenance": Path to YAML provenance sidecar
        }

    Notes:
        - Sorts by consensus_rank for deterministic output
        - Sidecar records generated_at, file names, row statistics and columns
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if isinstance(df, pl.LazyFrame):
        df = df.collect()

    df = df.sort(CONSENSUS_RANK)

    tsv_path = output_dir / f"{filename_base}.tsv"
    parquet_path = output_dir / f"{filename_base}.parquet"
    provenance_path = output_dir / f"{filename_base}.provenance.yaml"

    df.write_csv(tsv_path, separator="\t", include_header=True)
    df.write_parquet(parquet_path, compression="snappy", use_pyarrow=True)

    statistics = {"total_candidates": df.height}
    if df.height:
        statistics["best_rank_sum"] = int(df[RANK_SUM].min())
        statistics["worst_rank_sum"] = int(df[RANK_SUM].max())
        statistics["top_symbol"] = df[GENE_SYMBOL][0]

    provenance = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        **(metadata or {}),
        "output_files": [tsv_path.name, parquet_path.name],
        "statistics": statistics,
        "column_count": len(df.columns),
        "column_names": df.columns,
    }

    with open(provenance_path, "w") as f:
        yaml.dump(provenance, f, default_flow_style=False, sort_keys=False)

    return {
        "tsv": tsv_path,
        "parquet": parquet_path,
        "provenance": provenance_path,
    }
