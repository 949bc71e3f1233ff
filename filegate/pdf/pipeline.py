from typing import ClassVar

from filegate.config.settings import Settings
from filegate.database.datastore import Datastore
from filegate.inspection.signatures import ContentSignatureScanner
from filegate.logging.logger import Log
from filegate.pdf.cross_check.factory import PageCounterFactory
from filegate.pdf.sanitizer import QpdfLinearizer, RasterFlattener
from filegate.pdf.semantics import ACTIVE_CONTENT_SIGNATURES, SemanticScanner
from filegate.pdf.steps import (
    CrossParserStep,
    DeepStructureStep,
    PdfHeaderStep,
    ReputationStep,
    SemanticStep,
    TrailerStep,
)
from filegate.pdf.structure import ResourceCeilings, StructuralAnalyzer
from filegate.pipeline.base import BaseFilePipeline, PipelineContext, PipelineStep
from filegate.pipeline.exceptions import SanitizationFailure, StructuralRejection
from filegate.pipeline.models import Category, Finding, Severity
from filegate.pipeline.steps import IngressStep, SignatureScanStep
from filegate.sandbox.process_sandbox import ProcessSandbox

PDF_ALLOWED_MIME_TYPES = frozenset({"application/pdf"})


class PdfPipeline(BaseFilePipeline):
    """qpdf is the authority: the stored file is always qpdf's rewrite."""

    engine: ClassVar[str] = "pdf"

    def __init__(
        self,
        steps: list[PipelineStep],
        analyzer: StructuralAnalyzer,
        semantic_scanner: SemanticScanner,
        ceilings: ResourceCeilings,
        linearizer: QpdfLinearizer,
        flattener: RasterFlattener | None = None,
    ) -> None:
        super().__init__(steps)
        self._analyzer = analyzer
        self._semantics = semantic_scanner
        self._ceilings = ceilings
        self._linearizer = linearizer
        self._flattener = flattener

    def sanitize(self, context: PipelineContext) -> None:
        self._linearizer.rewrite(context.source_path, context.output_path)
        context.output_mime = "application/pdf"

    def verify(self, context: PipelineContext) -> list[Finding]:
        try:
            structure = self._analyzer.analyze(context.output_path)
        except StructuralRejection as exc:
            return [Finding(Category.STRUCTURAL, Severity.CRITICAL, f"Sanitized PDF: {exc}")]
        return self._ceilings.check(structure) + self._semantics.scan(structure.objects)

    def recover(self, context: PipelineContext) -> bool:
        if self._flattener is None:
            return False
        Log.warning(f"[{context.batch_id}] threats survived qpdf; flattening to raster")
        try:
            self._flattener.flatten(context.source_path, context.output_path)
        except SanitizationFailure as exc:
            Log.warning(f"[{context.batch_id}] flatten fallback failed: {exc}")
            return False
        return True


def build_pdf_pipeline(settings: Settings, datastore: Datastore) -> PdfPipeline:
    """Build the PDF pipeline from settings."""
    sandbox = ProcessSandbox(default_timeout=settings.tool_timeout_seconds)
    analyzer = StructuralAnalyzer(sandbox, settings.qpdf_binary)
    semantic_scanner = SemanticScanner(max_depth=settings.pdf_max_recursion_depth)
    ceilings = ResourceCeilings(
        max_objects=settings.pdf_max_object_count,
        max_streams=settings.pdf_max_stream_count,
        max_pages=settings.pdf_max_page_count,
    )

    steps: list[PipelineStep] = [
        IngressStep(
            min_size=settings.pdf_min_file_size,
            max_size=settings.pdf_max_file_size,
            allowed_mimes=PDF_ALLOWED_MIME_TYPES,
        ),
        PdfHeaderStep(),
        ReputationStep(datastore),
        TrailerStep(),
        DeepStructureStep(analyzer, ceilings),
    ]
    counter = PageCounterFactory.create(settings, sandbox)
    if counter is not None:
        steps.append(CrossParserStep(counter))
    steps += [
        SemanticStep(semantic_scanner),
        SignatureScanStep(ContentSignatureScanner(ACTIVE_CONTENT_SIGNATURES)),
    ]

    flattener = None
    if settings.pdf_flatten_fallback:
        flattener = RasterFlattener(
            sandbox,
            dpi=settings.pdf_flatten_dpi,
            pdftoppm_binary=settings.pdftoppm_binary,
            img2pdf_binary=settings.img2pdf_binary,
        )
    return PdfPipeline(
        steps=steps,
        analyzer=analyzer,
        semantic_scanner=semantic_scanner,
        ceilings=ceilings,
        linearizer=QpdfLinearizer(sandbox, settings.pdf_linearize_flags, settings.qpdf_binary),
        flattener=flattener,
    )
