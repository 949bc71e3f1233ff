from filegate.inspection.signatures import ContentSignatureScanner
from filegate.logging.logger import Log
from filegate.pipeline.base import PipelineContext, PipelineStep
from filegate.pipeline.exceptions import ContentRejection, PolicyRejection


class IngressStep(PipelineStep):
    """Size bounds plus the pipeline's own extension/MIME allow-lists."""

    def __init__(
        self,
        min_size: int,
        max_size: int,
        allowed_mimes: frozenset[str],
        allowed_extensions: frozenset[str] | None = None,
    ) -> None:
        self._min_size = min_size
        self._max_size = max_size
        self._allowed_mimes = allowed_mimes
        self._allowed_extensions = allowed_extensions

    def run(self, context: PipelineContext) -> PipelineContext:
        size = context.candidate.size
        if size > self._max_size:
            raise PolicyRejection(
                f"File size {size} exceeds limit {self._max_size}", code="file-too-large"
            )
        if size < self._min_size:
            raise PolicyRejection(
                f"File size {size} is below minimum {self._min_size}", code="file-too-small"
            )
        if self._allowed_extensions is not None and context.extension not in self._allowed_extensions:
            raise PolicyRejection(
                f"Extension .{context.extension} not allowed", code="unsupported-extension"
            )
        if context.sniffed_mime not in self._allowed_mimes:
            raise PolicyRejection(
                f"Disallowed content type {context.sniffed_mime}", code="mime-extension-mismatch"
            )
        return context


class SignatureScanStep(PipelineStep):
    """Records signature hits; critical hits reject the file outright."""

    def __init__(self, scanner: ContentSignatureScanner) -> None:
        self._scanner = scanner

    def run(self, context: PipelineContext) -> PipelineContext:
        findings = self._scanner.scan(context.candidate.data)
        context.findings.extend(findings)
        critical = [f for f in findings if f.is_critical]
        if critical:
            raise ContentRejection(f"{critical[0].description} detected in file content")
        if findings:
            Log.info(f"[{context.batch_id}] {len(findings)} signature signal(s) recorded")
        return context
