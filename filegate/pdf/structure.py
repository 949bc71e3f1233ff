import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from filegate.logging.logger import Log
from filegate.pipeline.exceptions import StructuralRejection
from filegate.pipeline.models import Category, Finding, Severity
from filegate.sandbox.process_sandbox import ProcessSandbox

# qpdf exits 3 when it recovered from warnings; the JSON is still complete.
QPDF_OK_CODES = frozenset({0, 3})

_STARTXREF = re.compile(rb"startxref\s+\d+")


@dataclass
class PdfStructure:
    """Object graph and resource counts derived from ``qpdf --json``."""

    object_count: int
    stream_count: int
    page_count: int
    xref_sections: int
    linearized: bool
    objects: dict[str, Any] = field(default_factory=dict)

    @property
    def expected_xref_sections(self) -> int:
        # a linearized file carries a first-page xref plus the main one
        return 2 if self.linearized else 1

    @property
    def incremental_updates(self) -> int:
        return max(0, self.xref_sections - self.expected_xref_sections)


@dataclass(frozen=True)
class ResourceCeilings:
    """Object, stream and page limits that keep PDF bombs away from the parsers."""

    max_objects: int
    max_streams: int
    max_pages: int

    def check(self, structure: PdfStructure) -> list[Finding]:
        findings: list[Finding] = []
        for label, count, limit in (
            ("Object", structure.object_count, self.max_objects),
            ("Stream", structure.stream_count, self.max_streams),
            ("Page", structure.page_count, self.max_pages),
        ):
            if count > limit:
                findings.append(
                    Finding(
                        Category.STRUCTURAL,
                        Severity.CRITICAL,
                        f"{label} count {count} exceeds safety threshold {limit}",
                    )
                )
        return findings


class StructuralAnalyzer:
    """Decode-or-die structure dump: no object graph means no further processing."""

    def __init__(self, sandbox: ProcessSandbox, qpdf_binary: str = "qpdf") -> None:
        self._sandbox = sandbox
        self._qpdf = qpdf_binary

    def analyze(self, path: Path) -> PdfStructure:
        """Dump ``path`` with qpdf and derive counts.

        Raises:
            StructuralRejection: if qpdf fails, times out or emits no object graph.
        """
        result = self._sandbox.run([self._qpdf, "--json=2", str(path)])
        if not result.succeeded(QPDF_OK_CODES):
            reason = "timed out" if result.timed_out else f"exited {result.exit_code}"
            Log.warning(f"qpdf structure dump {reason} for {path.name}")
            raise StructuralRejection(f"PDF structure could not be decoded (qpdf {reason})")

        try:
            document = json.loads(result.stdout)
        except ValueError as exc:
            raise StructuralRejection("PDF structure dump is not valid JSON") from exc
        if not isinstance(document, dict):
            raise StructuralRejection("PDF structure dump has no object graph")

        objects, stream_count = _extract_objects(document)
        if not objects:
            raise StructuralRejection("PDF structure dump has no object graph")

        raw = path.read_bytes()
        structure = PdfStructure(
            object_count=sum(1 for key in objects if key != "trailer"),
            stream_count=stream_count,
            page_count=len(document.get("pages") or []),
            xref_sections=len(_STARTXREF.findall(raw)),
            linearized=any(
                isinstance(value, dict) and "/Linearized" in value for value in objects.values()
            ),
            objects=objects,
        )
        Log.debug(
            f"{path.name}: {structure.object_count} objects, {structure.stream_count} streams, "
            f"{structure.page_count} pages, {structure.xref_sections} xref section(s)"
        )
        return structure


def _extract_objects(document: dict[str, Any]) -> tuple[dict[str, Any], int]:
    """Normalize qpdf JSON v2 (``qpdf`` key) and v1 (``objects`` key) to id -> value.

    Stream entries are reduced to their dictionary.
    """
    objects: dict[str, Any] = {}
    stream_count = 0

    qpdf_section = document.get("qpdf")
    if isinstance(qpdf_section, list) and len(qpdf_section) > 1 and isinstance(qpdf_section[1], dict):
        for key, entry in qpdf_section[1].items():
            object_id = key.removeprefix("obj:")
            if not isinstance(entry, dict):
                continue
            if "stream" in entry:
                stream_count += 1
                stream = entry["stream"] if isinstance(entry["stream"], dict) else {}
                objects[object_id] = stream.get("dict", {})
            else:
                objects[object_id] = entry.get("value")
        return objects, stream_count

    legacy = document.get("objects")
    if isinstance(legacy, dict):
        objects = dict(legacy)
        info = document.get("objectinfo") or {}
        stream_count = sum(
            1
            for entry in info.values()
            if isinstance(entry, dict) and (entry.get("stream") or {}).get("is")
        )
    return objects, stream_count
