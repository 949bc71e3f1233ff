from unittest.mock import MagicMock

from filegate.database.datastore import Datastore, build_datastore
from filegate.database.models import ReputationEntry
from filegate.database.repositories.audit_repository import AuditRepository
from filegate.database.repositories.rate_limit_repository import RateLimitRepository
from filegate.database.repositories.reputation_repository import ReputationRepository


def _datastore() -> tuple[Datastore, MagicMock, MagicMock, MagicMock]:
    audit = MagicMock(spec=AuditRepository)
    reputation = MagicMock(spec=ReputationRepository)
    rate_limit = MagicMock(spec=RateLimitRepository)
    return Datastore(audit, reputation, rate_limit), audit, reputation, rate_limit


class TestDatastore:
    def test_audit_start_and_end(self) -> None:
        datastore, audit, _, _ = _datastore()

        datastore.record_audit_start("b1", "a.csv", 12, "1.2.3.4")
        datastore.record_audit_end("b1", "sanitized", [], 10, "h", "text/csv", "csv")

        audit.start.assert_called_once_with("b1", "a.csv", 12, "1.2.3.4")
        audit.finish.assert_called_once_with("b1", "sanitized", [], 10, "h", "text/csv", "csv")

    def test_reputation(self) -> None:
        datastore, _, reputation, _ = _datastore()
        reputation.find.return_value = ReputationEntry("h")

        assert datastore.reputation_lookup("h") == ReputationEntry("h")
        datastore.reputation_upsert("h", "safe", [])

        reputation.upsert.assert_called_once_with("h", "safe", [])

    def test_rate_limit(self) -> None:
        datastore, _, _, rate_limit = _datastore()
        rate_limit.check_and_record.return_value = False

        assert datastore.rate_limit_check_and_record("1.2.3.4") is False

    def test_rate_limit_purge(self) -> None:
        datastore, _, _, rate_limit = _datastore()
        rate_limit.purge_expired.return_value = 3

        assert datastore.rate_limit_purge() == 3
        rate_limit.purge_expired.assert_called_once()

    def test_build_datastore(self) -> None:
        datastore = build_datastore(rate_limit_per_minute=5)
        assert datastore._rate_limit._limit == 5
