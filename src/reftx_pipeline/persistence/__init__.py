"""Persistence layer for cohort checkpoints and provenance tracking."""

from reftx_pipeline.persistence.duckdb_store import PipelineStore
from reftx_pipeline.persistence.provenance import CohortProvenance, ProvenanceTracker

__all__ = ["PipelineStore", "CohortProvenance", "ProvenanceTracker"]
