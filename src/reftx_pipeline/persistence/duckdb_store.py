"""DuckDB-based storage for per-cohort ranking checkpoints."""

from pathlib import Path
from typing import Any, Optional

import duckdb
import polars as pl


class PipelineStore:
    """
    DuckDB-based storage for pipeline intermediate results.

    Enables checkpoint-restart: cohorts that were already ranked are
    recorded in a metadata table and can be skipped on subsequent runs.
    """

    def __init__(self, db_path: Path):
        """
        Initialize PipelineStore with a DuckDB database.

        Args:
            db_path: Path to DuckDB database file. Parent directories
                     are created automatically.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(self.db_path))

        # Checkpoints are keyed by table and optional partition (cohort)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS _checkpoints (
                table_name VARCHAR,
                partition_key VARCHAR DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                row_count INTEGER,
                description VARCHAR,
                PRIMARY KEY (table_name, partition_key)
            )
        """)

    def _record_checkpoint(
        self,
        table_name: str,
        row_count: int,
        description: str,
        partition_key: str = "",
    ) -> None:
        self.conn.execute("""
            INSERT OR REPLACE INTO _checkpoints
                (table_name, partition_key, row_count, description, created_at)
            VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
        """, [table_name, partition_key, row_count, description])

    def save_dataframe(
        self,
        df: pl.DataFrame,
        table_name: str,
        description: str = "",
        replace: bool = True
    ) -> None:
        """
        Save a polars DataFrame to DuckDB as a table.

        Args:
            df: Polars DataFrame to save
            table_name: Name for the DuckDB table
            description: Optional description for checkpoint metadata
            replace: If True, replace existing table; if False, append
        """
        if not isinstance(df, pl.DataFrame):
            raise ValueError("df must be polars.DataFrame")

        if replace:
            self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} AS SELECT * FROM df")
        else:
            self.conn.execute(f"INSERT INTO {table_name} SELECT * FROM df")

        self._record_checkpoint(table_name, len(df), description)

    def replace_partition(
        self,
        df: pl.DataFrame,
        table_name: str,
        key_column: str,
        key_value: str,
        description: str = "",
    ) -> None:
        """
        Replace the rows of one partition of a shared table.

        Creates the table from df's schema if it doesn't exist, deletes rows
        where key_column = key_value, then inserts df. Re-running a cohort is
        therefore idempotent and leaves other cohorts untouched.

        Args:
            df: Rows for the partition; must contain key_column
            table_name: Shared DuckDB table
            key_column: Partition column (e.g. "cohort")
            key_value: Partition value being replaced
            description: Optional description for checkpoint metadata
        """
        if key_column not in df.columns:
            raise ValueError(f"df must contain partition column '{key_column}'")

        self.conn.execute(
            f"CREATE TABLE IF NOT EXISTS {table_name} AS SELECT * FROM df WHERE 1 = 0"
        )
        self.conn.execute(f"DELETE FROM {table_name} WHERE {key_column} = ?", [key_value])
        self.conn.execute(f"INSERT INTO {table_name} BY NAME SELECT * FROM df")

        self._record_checkpoint(table_name, len(df), description, partition_key=key_value)

    def load_dataframe(self, table_name: str) -> Optional[pl.DataFrame]:
        """
        Load a table as a polars DataFrame.

        Args:
            table_name: Name of the DuckDB table

        Returns:
            DataFrame or None if table doesn't exist
        """
        try:
            return self.conn.execute(f"SELECT * FROM {table_name}").pl()
        except duckdb.CatalogException:
            return None

    def has_checkpoint(self, table_name: str, partition_key: str = "") -> bool:
        """
        Check if a checkpoint exists.

        Args:
            table_name: Name of the table to check
            partition_key: Partition (cohort) within the table, if any

        Returns:
            True if checkpoint exists, False otherwise
        """
        result = self.conn.execute(
            "SELECT COUNT(*) FROM _checkpoints WHERE table_name = ? AND partition_key = ?",
            [table_name, partition_key]
        ).fetchone()
        return result[0] > 0

    def list_checkpoints(self) -> list[dict]:
        """
        List all checkpoints with metadata.

        Returns:
            List of checkpoint metadata dicts with keys:
            table_name, partition_key, created_at, row_count, description
        """
        result = self.conn.execute("""
            SELECT table_name, partition_key, created_at, row_count, description
            FROM _checkpoints
            ORDER BY created_at DESC, table_name, partition_key
        """).fetchall()

        return [
            {
                "table_name": row[0],
                "partition_key": row[1],
                "created_at": row[2],
                "row_count": row[3],
                "description": row[4],
            }
            for row in result
        ]

    def delete_checkpoint(self, table_name: str) -> None:
        """
        Drop a table and all of its checkpoint metadata.

        Args:
            table_name: Name of the table to delete
        """
        self.conn.execute(f"DROP TABLE IF EXISTS {table_name}")
        self.conn.execute(
            "DELETE FROM _checkpoints WHERE table_name = ?",
            [table_name]
        )

    def export_parquet(self, table_name: str, output_path: Path) -> None:
        """
        Export a table to Parquet format.

        Args:
            table_name: Name of the table to export
            output_path: Path to output Parquet file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn.execute(f"COPY {table_name} TO '{output_path}' (FORMAT PARQUET)")

    def execute_query(
        self,
        query: str,
        params: Optional[list[Any]] = None
    ) -> pl.DataFrame:
        """
        Execute arbitrary SQL query and return polars DataFrame.

        Args:
            query: SQL query to execute
            params: Optional query parameters

        Returns:
            Query results as polars DataFrame
        """
        if params:
            result = self.conn.execute(query, params)
        else:
            result = self.conn.execute(query)
        return result.pl()

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "PipelineStore":
        """
        Create PipelineStore from a PipelineConfig.

        Args:
            config: PipelineConfig instance

        Returns:
            PipelineStore instance
        """
        return cls(config.duckdb_path)
