from dataclasses import dataclass, field
from enum import Enum


class Category(str, Enum):
    STRUCTURAL = "structural"
    CONTENT = "content"
    ENCODING = "encoding"
    DIMENSION = "dimension"
    REPUTATION = "reputation"
    VALIDATION = "validation"


class Severity(str, Enum):
    INFO = "info"
    SUSPICIOUS = "suspicious"
    CRITICAL = "critical"


class ResultStatus(str, Enum):
    SANITIZED = "sanitized"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass(frozen=True)
class Finding:
    """A single observation made while inspecting a file.

    Findings are signals. They only decide the outcome where a pipeline
    explicitly treats a critical finding as fatal.
    """

    category: Category
    severity: Severity
    description: str
    location: str = ""  # object id, row/cell, signature name

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def to_dict(self) -> dict[str, str]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "description": self.description,
            "location": self.location,
        }


@dataclass(frozen=True)
class UploadCandidate:
    """Raw upload as received from the caller. Never persisted as-is."""

    data: bytes
    filename: str
    declared_size: int
    declared_content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class RequestContext:
    """Caller identity for one request (rate limiting and audit)."""

    request_id: str
    client_ip: str
    session_id: str | None = None

    @property
    def identifiers(self) -> list[str]:
        return [i for i in (self.client_ip, self.session_id) if i]


@dataclass(frozen=True)
class SanitizedArtifact:
    """Output of the authoritative sanitizer. The hash covers these bytes only."""

    data: bytes
    sha256: str
    extension: str
    mime_type: str
    original_size: int

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def byte_delta(self) -> int:
        return self.original_size - self.size


@dataclass
class PipelineResult:
    """Outcome of one gateway run."""

    status: ResultStatus
    batch_id: str
    findings: list[Finding] = field(default_factory=list)
    artifact: SanitizedArtifact | None = None
    artifact_token: str | None = None
    rejection_code: str | None = None
    message: str = ""
    mime_type: str | None = None
    engine: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status is ResultStatus.SANITIZED

    def to_response(self, expose_findings: bool = True) -> dict[str, object]:
        """Caller-facing summary. Never contains paths or tool output."""
        response: dict[str, object] = {
            "status": self.status.value,
            "batch_id": self.batch_id,
            "message": self.message,
        }
        if self.rejection_code:
            response["code"] = self.rejection_code
        if self.artifact_token:
            response["artifact"] = self.artifact_token
        if self.artifact is not None:
            response["byte_delta"] = self.artifact.byte_delta
        if expose_findings:
            response["findings"] = [f.to_dict() for f in self.findings]
        else:
            response["finding_count"] = len(self.findings)
        return response
