"""Shared synthetic cohort fixtures.

Six genes, two replicate groups (HEK, HeLa) of two samples each:
- ENSG0001 ACTB: high everywhere
- ENSG0002/ENSG0003 GAPDH: two identifiers sharing a symbol
- ENSG0004 SPOR: dropped out of HEK_1 only
- ENSG0005: no symbol, falls back to its identifier
- ENSG0006 OFF: never detected
"""

import polars as pl
import pytest


@pytest.fixture
def counts():
    return pl.DataFrame({
        "gene_id": ["ENSG0001", "ENSG0002", "ENSG0003", "ENSG0004", "ENSG0005", "ENSG0006"],
        "HEK_1": [500, 200, 200, 0, 10, 0],
        "HEK_2": [500, 200, 200, 300, 10, 0],
        "HeLa_1": [500, 200, 200, 300, 10, 0],
        "HeLa_2": [500, 200, 200, 300, 10, 0],
    })


@pytest.fixture
def gene_lengths():
    return pl.DataFrame({
        "gene_id": ["ENSG0001", "ENSG0002", "ENSG0003", "ENSG0004", "ENSG0005", "ENSG0006"],
        "gene_length": [1000.0] * 6,
    })


@pytest.fixture
def gene_symbols():
    return pl.DataFrame({
        "gene_id": ["ENSG0001", "ENSG0002", "ENSG0003", "ENSG0004", "ENSG0005", "ENSG0006"],
        "gene_symbol": ["ACTB", "GAPDH", "GAPDH", "SPOR", "", "OFF"],
    })


@pytest.fixture
def write_inputs(tmp_path, counts, gene_lengths, gene_symbols):
    """Write the synthetic cohort as TSV files and return their paths."""

    def _write(cohort_name: str = "cell_lines", cohort_counts: pl.DataFrame | None = None):
        annotation_dir = tmp_path / "annotation"
        counts_dir = tmp_path / "counts"
        annotation_dir.mkdir(exist_ok=True)
        counts_dir.mkdir(exist_ok=True)

        lengths_path = annotation_dir / "gene_lengths.tsv"
        symbols_path = annotation_dir / "gene_symbols.tsv"
        counts_path = counts_dir / f"{cohort_name}.tsv"

        gene_lengths.write_csv(lengths_path, separator="\t")
        gene_symbols.write_csv(symbols_path, separator="\t")
        (cohort_counts if cohort_counts is not None else counts).rename(
            {"gene_id": "Geneid"}
        ).write_csv(counts_path, separator="\t")

        return {
            "gene_lengths": lengths_path,
            "gene_symbols": symbols_path,
            "counts": counts_path,
        }

    return _write
