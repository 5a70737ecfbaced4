"""Per-cohort ranking provenance for reproducibility."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import duckdb
from pydantic import BaseModel, Field

from reftx_pipeline.ranking.models import AggregationPolicy

PROVENANCE_TABLE_NAME = "_provenance"


class CohortProvenance(BaseModel):
    """How one cohort's consensus ranking was produced.

    Attributes:
        cohort: Cohort name
        policy: Replicate aggregation policy
        partition: Group name -> member samples
        symbol_count: Number of ranked symbols
        ranked_at: When the cohort was ranked (UTC)
        details: Free-form run statistics (zero rows, top symbols, ...)
    """

    cohort: str
    policy: AggregationPolicy
    partition: dict[str, list[str]]
    symbol_count: int = Field(ge=0)
    ranked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    details: dict[str, Any] = Field(default_factory=dict)


class ProvenanceTracker:
    """
    Collects cohort provenance for one ranking run.

    Each cohort has at most one record; ranking a cohort again in the same
    run replaces its record. Run-level fields (pipeline version, config hash,
    annotation versions) are shared by every cohort.
    """

    def __init__(self, pipeline_version: str, config: "PipelineConfig"):
        self.pipeline_version = pipeline_version
        self.config_hash = config.config_hash()
        self.genome_build = config.versions.genome_build
        self.annotation_release = config.versions.annotation_release
        self.cohorts: dict[str, CohortProvenance] = {}
        self.created_at = datetime.now(timezone.utc)

    def record_cohort(
        self,
        cohort: str,
        policy: AggregationPolicy | str,
        partition: dict[str, list[str]],
        symbol_count: int,
        details: Optional[dict[str, Any]] = None,
    ) -> CohortProvenance:
        """
        Record (or replace) the provenance of a ranked cohort.

        Returns:
            The stored CohortProvenance
        """
        record = CohortProvenance(
            cohort=cohort,
            policy=policy,
            partition=partition,
            symbol_count=symbol_count,
            details=details or {},
        )
        self.cohorts[cohort] = record
        return record

    def create_metadata(self) -> dict:
        """Run metadata with one entry per recorded cohort, JSON-ready."""
        return {
            "pipeline_version": self.pipeline_version,
            "config_hash": self.config_hash,
            "annotation_versions": {
                "genome_build": self.genome_build,
                "annotation_release": self.annotation_release,
            },
            "created_at": self.created_at.isoformat(),
            "cohorts": [record.model_dump(mode="json") for record in self.cohorts.values()],
        }

    def save_sidecar(self, output_path: Path) -> Path:
        """
        Write the run metadata next to an output as {path}.provenance.json.

        Returns:
            Path to the sidecar file
        """
        sidecar_path = output_path.with_suffix(".provenance.json")
        sidecar_path.parent.mkdir(parents=True, exist_ok=True)

        with open(sidecar_path, "w") as f:
            json.dump(self.create_metadata(), f, indent=2)

        return sidecar_path

    def save_to_store(self, store: "PipelineStore", cohorts: Optional[list[str]] = None) -> None:
        """
        Upsert cohort provenance rows into the store's _provenance table.

        Args:
            store: PipelineStore instance
            cohorts: Cohorts to write (default: every recorded cohort)
        """
        store.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {PROVENANCE_TABLE_NAME} (
                cohort VARCHAR PRIMARY KEY,
                pipeline_version VARCHAR,
                config_hash VARCHAR,
                genome_build VARCHAR,
                annotation_release INTEGER,
                policy VARCHAR,
                partition_json VARCHAR,
                symbol_count INTEGER,
                ranked_at TIMESTAMP,
                details_json VARCHAR
            )
        """)

        names = cohorts if cohorts is not None else list(self.cohorts)
        for name in names:
            record = self.cohorts[name]
            store.conn.execute(f"""
                INSERT OR REPLACE INTO {PROVENANCE_TABLE_NAME} VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                record.cohort,
                self.pipeline_version,
                self.config_hash,
                self.genome_build,
                self.annotation_release,
                record.policy.value,
                json.dumps(record.partition),
                record.symbol_count,
                # TIMESTAMP columns are naive; values are UTC
                record.ranked_at.astimezone(timezone.utc).replace(tzinfo=None),
                json.dumps(record.details, default=str),
            ])

    @staticmethod
    def load_from_store(store: "PipelineStore", cohort: str) -> Optional[CohortProvenance]:
        """
        Read a cohort's provenance back from the store.

        Returns:
            CohortProvenance, or None if the cohort was never ranked into it
        """
        try:
            row = store.conn.execute(f"""
                SELECT cohort, policy, partition_json, symbol_count, ranked_at, details_json
                FROM {PROVENANCE_TABLE_NAME}
                WHERE cohort = ?
            """, [cohort]).fetchone()
        except duckdb.CatalogException:
            return None

        if row is None:
            return None

        return CohortProvenance(
            cohort=row[0],
            policy=row[1],
            partition=json.loads(row[2]),
            symbol_count=row[3],
            ranked_at=row[4].replace(tzinfo=timezone.utc),
            details=json.loads(row[5]),
        )

    @classmethod
    def from_config(
        cls,
        config: "PipelineConfig",
        version: Optional[str] = None
    ) -> "ProvenanceTracker":
        """
        Create ProvenanceTracker from a PipelineConfig.

        Args:
            config: PipelineConfig instance
            version: Pipeline version string. If None, uses reftx_pipeline.__version__
        """
        if version is None:
            from reftx_pipeline import __version__
            version = __version__

        return cls(version, config)
