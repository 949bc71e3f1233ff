from psycopg.types.json import Jsonb

from filegate.database.connection import get_connection
from filegate.logging.logger import Log


class CsvImportRepository:
    """Staged, all-or-nothing import of validated CSV rows."""

    def commit_batch(self, batch_id: str, rows: list[dict[str, str]]) -> int:
        """Stage ``rows`` and copy them to csv_imports in one transaction.

        Staging rows are deleted inside the same transaction, so a rollback
        leaves neither staged nor imported rows behind. Returns the number
        of rows imported.
        """
        with get_connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.executemany(
                        """
                        INSERT INTO csv_staging (batch_id, row_number, data)
                        VALUES (%s, %s, %s)
                        """,
                        [(batch_id, number, Jsonb(row)) for number, row in enumerate(rows, 1)],
                    )
                    cur.execute(
                        """
                        INSERT INTO csv_imports (batch_id, row_number, data)
                        SELECT batch_id, row_number, data
                        FROM csv_staging
                        WHERE batch_id = %s
                        ORDER BY row_number
                        """,
                        (batch_id,),
                    )
                    imported = cur.rowcount
                    cur.execute("DELETE FROM csv_staging WHERE batch_id = %s", (batch_id,))

        Log.info(f"[{batch_id}] CSV import committed {imported} row(s)")
        return imported

    def count_imported(self, batch_id: str) -> int:
        """Rows imported for a batch. Useful for tests."""
        with get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM csv_imports WHERE batch_id = %s", (batch_id,)
            ).fetchone()
        return 0 if row is None else row[0]
