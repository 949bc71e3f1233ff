import re
from dataclasses import dataclass
from typing import Any

from filegate.inspection.signatures import Signature
from filegate.pipeline.models import Category, Finding, Severity


@dataclass(frozen=True)
class DangerousKey:
    severity: Severity
    description: str


DANGEROUS_KEYS: dict[str, DangerousKey] = {
    "JS": DangerousKey(Severity.CRITICAL, "Embedded JavaScript"),
    "JavaScript": DangerousKey(Severity.CRITICAL, "JavaScript action"),
    "OpenAction": DangerousKey(Severity.CRITICAL, "Action executed on open"),
    "AA": DangerousKey(Severity.CRITICAL, "Additional (automatic) actions"),
    "Launch": DangerousKey(Severity.CRITICAL, "External program launch"),
    "SubmitForm": DangerousKey(Severity.CRITICAL, "Form submission to remote host"),
    "ImportData": DangerousKey(Severity.CRITICAL, "External data import"),
    "GoToR": DangerousKey(Severity.CRITICAL, "Remote document jump"),
    "GoToE": DangerousKey(Severity.CRITICAL, "Embedded document jump"),
    "URI": DangerousKey(Severity.CRITICAL, "URI action"),
    "AcroForm": DangerousKey(Severity.CRITICAL, "Interactive form"),
    "EmbeddedFile": DangerousKey(Severity.CRITICAL, "Embedded file"),
    "EmbeddedFiles": DangerousKey(Severity.CRITICAL, "Embedded file tree"),
    "RichMedia": DangerousKey(Severity.CRITICAL, "Rich media (Flash/video)"),
    "Sound": DangerousKey(Severity.CRITICAL, "Sound object"),
    "Movie": DangerousKey(Severity.CRITICAL, "Movie object"),
    "XFA": DangerousKey(Severity.CRITICAL, "XFA form"),
    "A": DangerousKey(Severity.CRITICAL, "Action dictionary"),
    "Action": DangerousKey(Severity.CRITICAL, "Action"),
    "Metadata": DangerousKey(Severity.SUSPICIOUS, "XMP metadata stream"),
}

# values of an action's /S entry that make the action itself dangerous
DANGEROUS_ACTION_TYPES = frozenset(
    {
        "JavaScript",
        "Launch",
        "SubmitForm",
        "ImportData",
        "GoToR",
        "GoToE",
        "URI",
        "RichMediaExecute",
        "Sound",
        "Movie",
        "Rendition",
    }
)

ACTIVE_CONTENT_SIGNATURES: list[Signature] = [
    Signature(
        name=f"/{name}",
        pattern=re.compile(rb"[\s/]" + re.escape(name.encode()) + rb"[\s/\[<]", re.IGNORECASE),
        severity=Severity.SUSPICIOUS,
        description=f"Raw byte match for {key.description}",
    )
    for name, key in DANGEROUS_KEYS.items()
]


def _name(value: Any) -> str | None:
    if isinstance(value, str) and value.startswith("/"):
        return value[1:]
    return None


class SemanticScanner:
    """Walks every object's value looking for dangerous dictionary keys."""

    def __init__(self, max_depth: int = 50) -> None:
        self._max_depth = max_depth

    def scan(self, objects: dict[str, Any]) -> list[Finding]:
        findings: list[Finding] = []
        for object_id, value in objects.items():
            hits: dict[str, Finding] = {}
            too_deep = self._walk(value, object_id, 0, hits)
            findings.extend(hits.values())
            if too_deep:
                findings.append(
                    Finding(
                        Category.STRUCTURAL,
                        Severity.CRITICAL,
                        f"Object nesting exceeds depth {self._max_depth}",
                        object_id,
                    )
                )
        return findings

    def _walk(self, value: Any, object_id: str, depth: int, hits: dict[str, Finding]) -> bool:
        """Collect one finding per dangerous key per object. Returns True when too deep."""
        if depth > self._max_depth:
            return True
        too_deep = False
        if isinstance(value, dict):
            for raw_key, child in value.items():
                key = raw_key.lstrip("/")
                self._check_key(key, child, object_id, hits)
                too_deep = self._walk(child, object_id, depth + 1, hits) or too_deep
        elif isinstance(value, list):
            for child in value:
                too_deep = self._walk(child, object_id, depth + 1, hits) or too_deep
        return too_deep

    @staticmethod
    def _check_key(key: str, child: Any, object_id: str, hits: dict[str, Finding]) -> None:
        # linearization hint tables reuse short keys (/S, /A, /O) for offsets
        if isinstance(child, (int, float)):
            return
        if key in DANGEROUS_KEYS and key not in hits:
            entry = DANGEROUS_KEYS[key]
            hits[key] = Finding(
                Category.CONTENT, entry.severity, f"Detected /{key}: {entry.description}", object_id
            )
        action = _name(child) if key == "S" else None
        if action in DANGEROUS_ACTION_TYPES and f"S:{action}" not in hits:
            hits[f"S:{action}"] = Finding(
                Category.CONTENT,
                Severity.CRITICAL,
                f"Detected /{action} action subtype",
                object_id,
            )
