from filegate.pipeline.models import Finding


class GatewayError(Exception):
    """Base exception for every rejection raised inside the gateway.

    ``code`` and ``public_message`` are the only parts ever shown to the
    caller. The exception message and ``findings`` go to the audit trail.
    """

    code: str = "rejected"
    public_message: str = "The file was rejected."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        findings: list[Finding] | None = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.findings: list[Finding] = list(findings or [])


class PolicyRejection(GatewayError):
    """Raised for extension/MIME mismatches, size bounds and rate limits."""

    code = "policy-violation"
    public_message = "The file does not meet the upload policy."


class StructuralRejection(GatewayError):
    """Raised when a file cannot be decoded by its canonical parser."""

    code = "invalid-structure"
    public_message = "The file structure is invalid."


class ContentRejection(GatewayError):
    """Raised when critical findings block a file before sanitization."""

    code = "dangerous-content"
    public_message = "The file contains disallowed content."


class SanitizationFailure(GatewayError):
    """Raised when the authoritative sanitizer fails or times out."""

    code = "sanitization-failed"
    public_message = "The file could not be sanitized."


class PostVerificationFailure(GatewayError):
    """Raised when a critical finding survives sanitization."""

    code = "verification-failed"
    public_message = "The file could not be sanitized."


class SystemFailure(GatewayError):
    """Raised when an internal dependency is unavailable."""

    code = "internal-error"
    public_message = "The file could not be processed."


class ToolUnavailableError(SystemFailure):
    """Raised when an external tool binary cannot be executed."""
