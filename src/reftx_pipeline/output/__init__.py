"""Output generation: dual-format consensus ranking files."""

from reftx_pipeline.output.writers import write_consensus_output

__all__ = ["write_consensus_output"]
