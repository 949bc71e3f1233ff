from typing import Any

from filegate.database.models import ReputationEntry
from filegate.database.repositories.audit_repository import AuditRepository
from filegate.database.repositories.rate_limit_repository import RateLimitRepository
from filegate.database.repositories.reputation_repository import ReputationRepository


class Datastore:
    """The gateway's single handle on audit, reputation and rate-limit state."""

    def __init__(
        self,
        audit_repo: AuditRepository,
        reputation_repo: ReputationRepository,
        rate_limit_repo: RateLimitRepository,
    ) -> None:
        self._audit = audit_repo
        self._reputation = reputation_repo
        self._rate_limit = rate_limit_repo

    def record_audit_start(
        self, batch_id: str, filename: str, size: int, client_id: str | None
    ) -> None:
        self._audit.start(batch_id, filename, size, client_id)

    def record_audit_end(
        self,
        batch_id: str,
        status: str,
        findings: list[dict[str, Any]],
        size: int,
        file_hash: str | None,
        mime: str | None,
        engine: str | None,
    ) -> None:
        self._audit.finish(batch_id, status, findings, size, file_hash, mime, engine)

    def reputation_lookup(self, file_hash: str) -> ReputationEntry:
        return self._reputation.find(file_hash)

    def reputation_upsert(self, file_hash: str, status: str, findings: list[dict[str, Any]]) -> None:
        self._reputation.upsert(file_hash, status, findings)

    def rate_limit_check_and_record(self, identifier: str) -> bool:
        return self._rate_limit.check_and_record(identifier)

    def rate_limit_purge(self) -> int:
        """Drop rate-limit attempts that fell out of the window."""
        return self._rate_limit.purge_expired()


def build_datastore(rate_limit_per_minute: int) -> Datastore:
    return Datastore(
        audit_repo=AuditRepository(),
        reputation_repo=ReputationRepository(),
        rate_limit_repo=RateLimitRepository(rate_limit_per_minute),
    )
