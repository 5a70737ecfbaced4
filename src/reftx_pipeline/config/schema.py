"""Pydantic models for pipeline configuration."""

import hashlib
import json
import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from reftx_pipeline.ranking.models import AggregationPolicy


class DataSourceVersions(BaseModel):
    """Version information for the annotation inputs."""

    genome_build: str = Field(
        default="GRCh38",
        description="Genome build the gene lengths were computed against",
    )
    annotation_release: int = Field(
        ...,
        ge=1,
        description="Annotation release number used for lengths and symbols",
    )


class AnnotationPaths(BaseModel):
    """Locations of the precomputed gene lookup tables."""

    gene_lengths: Path = Field(
        ...,
        description="TSV of gene_id -> effective (exon union) length",
    )
    gene_symbols: Path = Field(
        ...,
        description="TSV of gene_id -> gene symbol",
    )


class RankingSettings(BaseModel):
    """Settings for consuming the consensus ranking."""

    top_n: int = Field(
        default=50,
        ge=1,
        description="Number of candidate reference transcripts reported per cohort",
    )


class GroupingConfig(BaseModel):
    """How sample names are assigned to replicate groups."""

    kind: Literal["replicate_suffix", "identity", "mapping"] = Field(
        default="replicate_suffix",
        description="Sample classifier to use",
    )
    pattern: str = Field(
        default=r"[_.-]?\d+$",
        description="Regex stripped from sample names (replicate_suffix only)",
    )
    mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Explicit sample -> group assignments (mapping only)",
    )

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v: str) -> str:
        """Reject patterns that are not valid regular expressions."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid replicate suffix pattern {v!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def mapping_required(self) -> "GroupingConfig":
        if self.kind == "mapping" and not self.mapping:
            raise ValueError("grouping.mapping must be non-empty when kind is 'mapping'")
        return self


class CohortConfig(BaseModel):
    """One independently ranked set of sample groups."""

    name: str = Field(
        ...,
        pattern=r"^[A-Za-z0-9_]+$",
        description="Cohort name (letters, digits and underscores)",
    )
    counts: Path = Field(
        ...,
        description="TSV count matrix (genes x samples)",
    )
    policy: AggregationPolicy = Field(
        default=AggregationPolicy.ZERO_FLOOR,
        description="Replicate aggregation policy",
    )
    grouping: GroupingConfig = Field(
        default_factory=GroupingConfig,
        description="Sample -> group classifier settings",
    )
    declared_groups: list[str] | None = Field(
        default=None,
        description="Groups that must be present; an empty one is an error",
    )


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    data_dir: Path = Field(
        ...,
        description="Directory for pipeline outputs",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to DuckDB database file",
    )
    versions: DataSourceVersions = Field(
        ...,
        description="Annotation version information",
    )
    annotation: AnnotationPaths = Field(
        ...,
        description="Gene length and symbol lookup tables",
    )
    ranking: RankingSettings = Field(
        default_factory=RankingSettings,
        description="Consensus ranking settings",
    )
    cohorts: list[CohortConfig] = Field(
        ...,
        min_length=1,
        description="Cohorts to rank",
    )

    @field_validator("data_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("cohorts")
    @classmethod
    def unique_cohort_names(cls, v: list[CohortConfig]) -> list[CohortConfig]:
        # Cohort names become DuckDB identifiers, which ignore case
        names = [c.name.lower() for c in v]
        duplicates = sorted({c.name for c in v if names.count(c.name.lower()) > 1})
        if duplicates:
            raise ValueError(f"Duplicate cohort names: {', '.join(duplicates)}")
        return v

    def get_cohort(self, name: str) -> CohortConfig:
        """
        Look up a cohort by name.

        Raises:
            KeyError: If no cohort has that name
        """
        for cohort in self.cohorts:
            if cohort.name == name:
                return cohort
        raise KeyError(f"Unknown cohort: {name}")

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Returns a deterministic hash based on all config values,
        useful for tracking config changes and cache invalidation.
        """
        config_dict = self.model_dump(mode="python")
        config_json = json.dumps(
            config_dict,
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()
