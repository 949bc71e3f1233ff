from filegate.database.connection import get_connection


class RateLimitRepository:
    """Sliding one-minute window over the upload_rate_limits table."""

    def __init__(self, limit_per_minute: int) -> None:
        self._limit = limit_per_minute

    def check_and_record(self, identifier: str) -> bool:
        """Return True and record the attempt if the caller is under the limit.

        The advisory lock serializes concurrent checks for the same identifier.
        """
        with get_connection() as conn:
            with conn.transaction():
                conn.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (identifier,))
                row = conn.execute(
                    """
                    SELECT COUNT(*)
                    FROM upload_rate_limits
                    WHERE identifier = %s
                      AND created_at > NOW() - INTERVAL '1 minute'
                    """,
                    (identifier,),
                ).fetchone()
                if row is not None and row[0] >= self._limit:
                    return False
                conn.execute(
                    "INSERT INTO upload_rate_limits (identifier) VALUES (%s)",
                    (identifier,),
                )
        return True

    def purge_expired(self) -> int:
        """Drop attempts older than the window. Returns rows deleted."""
        with get_connection() as conn:
            cur = conn.execute(
                "DELETE FROM upload_rate_limits WHERE created_at < NOW() - INTERVAL '1 minute'"
            )
            conn.commit()
            return cur.rowcount
