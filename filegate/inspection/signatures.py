import re
from dataclasses import dataclass

from filegate.pipeline.models import Category, Finding, Severity


@dataclass(frozen=True)
class Signature:
    """A byte pattern that marks executable or scripted content."""

    name: str
    pattern: re.Pattern[bytes]
    severity: Severity
    description: str

    @classmethod
    def literal(
        cls,
        name: str,
        needle: bytes,
        severity: Severity,
        description: str,
        ignore_case: bool = False,
    ) -> "Signature":
        flags = re.IGNORECASE if ignore_case else 0
        return cls(name, re.compile(re.escape(needle), flags), severity, description)


class ContentSignatureScanner:
    """Scans the whole byte stream, not just the header, for signatures.

    Scanning every offset defeats payloads placed after an innocent header.
    """

    def __init__(self, signatures: list[Signature], category: Category = Category.CONTENT) -> None:
        self._signatures = signatures
        self._category = category

    def scan(self, data: bytes) -> list[Finding]:
        findings: list[Finding] = []
        for signature in self._signatures:
            match = signature.pattern.search(data)
            if match is None:
                continue
            findings.append(
                Finding(
                    category=self._category,
                    severity=signature.severity,
                    description=signature.description,
                    location=f"{signature.name}@{match.start()}",
                )
            )
        return findings
