from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

AUDIT_PROCESSING = "processing"
AUDIT_SANITIZED = "sanitized"
AUDIT_REJECTED = "rejected"
AUDIT_ERROR = "error"

REPUTATION_SAFE = "safe"
REPUTATION_MALICIOUS = "malicious"
REPUTATION_UNKNOWN = "unknown"


@dataclass
class AuditRecord:
    """Represents a row from the upload_audit table."""

    batch_id: str
    filename: str
    status: str
    file_size: int
    client_id: str | None = None
    detected_mime: str | None = None
    engine: str | None = None
    findings: list[dict[str, Any]] = field(default_factory=list)
    file_hash: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class ReputationEntry:
    """Represents a row from the file_reputation table."""

    file_hash: str
    status: str = REPUTATION_UNKNOWN
    findings: list[Any] = field(default_factory=list)
    detection_count: int = 0
    updated_at: datetime | None = None

    @property
    def is_malicious(self) -> bool:
        return self.status == REPUTATION_MALICIOUS
