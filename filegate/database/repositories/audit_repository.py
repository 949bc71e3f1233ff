from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from filegate.database.connection import get_connection
from filegate.database.models import AUDIT_PROCESSING, AuditRecord


class AuditRepository:
    """Database operations for the upload_audit table."""

    def start(self, batch_id: str, filename: str, file_size: int, client_id: str | None) -> None:
        """Insert the processing row written before any inspection happens."""
        with get_connection() as conn:
            conn.execute(
                """
                INSERT INTO upload_audit (batch_id, filename, status, file_size, client_id)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (batch_id, filename, AUDIT_PROCESSING, file_size, client_id),
            )
            conn.commit()

    def finish(
        self,
        batch_id: str,
        status: str,
        findings: list[dict[str, Any]],
        file_size: int,
        file_hash: str | None,
        detected_mime: str | None,
        engine: str | None,
    ) -> None:
        """Close the audit row with the final verdict."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE upload_audit
                SET status = %s, findings = %s, file_size = %s, file_hash = %s,
                    detected_mime = %s, engine = %s, completed_at = NOW()
                WHERE batch_id = %s
                """,
                (status, Jsonb(findings), file_size, file_hash, detected_mime, engine, batch_id),
            )
            conn.commit()

    def find_by_batch_id(self, batch_id: str) -> AuditRecord | None:
        """Find an audit row by batch id. Useful for tests."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT batch_id, filename, status, file_size, client_id,
                           detected_mime, engine, findings, file_hash,
                           created_at, completed_at
                    FROM upload_audit
                    WHERE batch_id = %s
                    """,
                    (batch_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None

        return AuditRecord(
            batch_id=row["batch_id"],
            filename=row["filename"],
            status=row["status"],
            file_size=row["file_size"],
            client_id=row["client_id"],
            detected_mime=row["detected_mime"],
            engine=row["engine"],
            findings=row["findings"] or [],
            file_hash=row["file_hash"],
            created_at=row["created_at"],
            completed_at=row["completed_at"],
        )
