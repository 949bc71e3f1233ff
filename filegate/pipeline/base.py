from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from filegate.inspection.hashing import sha256_hex
from filegate.logging.logger import Log
from filegate.pipeline.exceptions import (
    ContentRejection,
    GatewayError,
    PostVerificationFailure,
)
from filegate.pipeline.models import (
    Category,
    Finding,
    SanitizedArtifact,
    Severity,
    UploadCandidate,
)

if TYPE_CHECKING:
    from filegate.pdf.structure import PdfStructure


@dataclass(slots=True)
class PipelineContext:
    """Per-request state handed from step to step. Never shared."""

    batch_id: str
    candidate: UploadCandidate
    extension: str
    sniffed_mime: str
    source_path: Path
    output_path: Path
    original_sha256: str = ""
    findings: list[Finding] = field(default_factory=list)
    output_mime: str = ""
    # csv
    header: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)
    neutralized_cells: int = 0
    # pdf
    structure: PdfStructure | None = None
    # image
    image_size: tuple[int, int] | None = None

    def add(
        self,
        category: Category,
        severity: Severity,
        description: str,
        location: str = "",
    ) -> Finding:
        finding = Finding(category, severity, description, location)
        self.findings.append(finding)
        return finding


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError


def discard(*paths: Path) -> None:
    """Delete intermediate files; missing files are fine."""
    for path in paths:
        path.unlink(missing_ok=True)


class BaseFilePipeline(ABC):
    """Validate (signals) -> sanitize (authority) -> verify (post-sanitize).

    Subclasses provide the format-specific sanitizer and verifier; the
    validation stage is an ordered list of steps.
    """

    engine: ClassVar[str]

    def __init__(self, steps: list[PipelineStep]) -> None:
        self._steps = steps

    def validate(self, context: PipelineContext) -> None:
        """Run every validation step. Hard gates raise; signals accumulate."""
        for step in self._steps:
            Log.debug(f"[{context.batch_id}] {self.engine}: {type(step).__name__}")
            step.run(context)

    @abstractmethod
    def sanitize(self, context: PipelineContext) -> None:
        """Write the sanitized rendition of ``source_path`` to ``output_path``.

        Raises:
            SanitizationFailure: if the sanitizer fails for any reason.
        """

    @abstractmethod
    def verify(self, context: PipelineContext) -> list[Finding]:
        """Re-inspect ``output_path`` and return what was found there."""

    def recover(self, context: PipelineContext) -> bool:
        """Second-tier sanitizer used when verification fails. Off by default."""
        return False

    def commit(self, context: PipelineContext) -> None:
        """Persist derived data once the artifact has been stored."""

    def run(self, context: PipelineContext) -> SanitizedArtifact:
        self.validate(context)

        blocking = [
            f for f in context.findings if f.is_critical and f.category is not Category.CONTENT
        ]
        if blocking:
            raise ContentRejection(
                f"{len(blocking)} blocking finding(s), first: {blocking[0].description}"
            )

        try:
            self.sanitize(context)
        except GatewayError:
            discard(context.output_path)
            raise

        verification = self.verify(context)
        if _critical(verification) and self.recover(context):
            context.add(
                Category.STRUCTURAL,
                Severity.INFO,
                "Primary sanitizer output failed verification; fallback sanitizer used",
            )
            verification = self.verify(context)

        critical = _critical(verification)
        if critical:
            discard(context.output_path)
            raise PostVerificationFailure(
                f"{len(critical)} critical finding(s) survived sanitization, "
                f"first: {critical[0].description}",
                findings=verification,
            )
        context.findings.extend(
            Finding(f.category, Severity.INFO, f"After sanitization: {f.description}", f.location)
            for f in verification
        )
        return self._build_artifact(context)

    def _build_artifact(self, context: PipelineContext) -> SanitizedArtifact:
        data = context.output_path.read_bytes()
        artifact = SanitizedArtifact(
            data=data,
            sha256=sha256_hex(data),
            extension=context.extension,
            mime_type=context.output_mime or context.sniffed_mime,
            original_size=context.candidate.size,
        )
        Log.info(
            f"[{context.batch_id}] {self.engine} sanitized: "
            f"{artifact.original_size} -> {artifact.size} bytes (delta {artifact.byte_delta})"
        )
        return artifact


def _critical(findings: list[Finding]) -> list[Finding]:
    return [f for f in findings if f.is_critical]
