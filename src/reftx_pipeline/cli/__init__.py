"""Command-line interface for reftx-pipeline."""
