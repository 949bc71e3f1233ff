from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from filegate.database.connection import get_connection
from filegate.database.models import ReputationEntry


class ReputationRepository:
    """Database operations for the file_reputation table."""

    def find(self, file_hash: str) -> ReputationEntry:
        """Look up a hash. Unseen hashes come back with status ``unknown``."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT file_hash, status, findings, detection_count, updated_at
                    FROM file_reputation
                    WHERE file_hash = %s
                    """,
                    (file_hash,),
                )
                row = cur.fetchone()

        if row is None:
            return ReputationEntry(file_hash=file_hash)

        return ReputationEntry(
            file_hash=row["file_hash"],
            status=row["status"],
            findings=row["findings"] or [],
            detection_count=row["detection_count"],
            updated_at=row["updated_at"],
        )

    def upsert(self, file_hash: str, status: str, findings: list[dict[str, Any]]) -> None:
        """Insert or update in one statement so concurrent writers never race."""
        with get_connection() as conn:
            conn.execute(
                """
                INSERT INTO file_reputation (file_hash, status, findings, detection_count)
                VALUES (%s, %s, %s, 1)
                ON CONFLICT (file_hash) DO UPDATE
                SET status = EXCLUDED.status,
                    findings = EXCLUDED.findings,
                    detection_count = file_reputation.detection_count + 1,
                    updated_at = NOW()
                """,
                (file_hash, status, Jsonb(findings)),
            )
            conn.commit()
