from filegate.database.datastore import Datastore
from filegate.logging.logger import Log
from filegate.pdf.cross_check.base import BasePageCounter
from filegate.pdf.cross_check.exceptions import PageCountError
from filegate.pdf.semantics import SemanticScanner
from filegate.pdf.structure import ResourceCeilings, StructuralAnalyzer
from filegate.pipeline.base import PipelineContext, PipelineStep
from filegate.pipeline.exceptions import StructuralRejection
from filegate.pipeline.models import Category, Severity

PDF_MAGIC = b"%PDF-"
TRAILER_WINDOW = 1024


class PdfHeaderStep(PipelineStep):
    """``%PDF-`` must open the file. Anything before it is a polyglot."""

    def run(self, context: PipelineContext) -> PipelineContext:
        if not context.candidate.data.startswith(PDF_MAGIC):
            raise StructuralRejection("PDF header is not at offset 0 (possible polyglot)")
        return context


class ReputationStep(PipelineStep):
    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    def run(self, context: PipelineContext) -> PipelineContext:
        entry = self._datastore.reputation_lookup(context.original_sha256)
        if entry.is_malicious:
            context.add(
                Category.REPUTATION,
                Severity.CRITICAL,
                f"Hash previously identified as malicious ({entry.detection_count} detection(s))",
                context.original_sha256,
            )
        return context


class TrailerStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        if b"%%EOF" not in context.candidate.data[-TRAILER_WINDOW:]:
            context.add(Category.STRUCTURAL, Severity.SUSPICIOUS, "PDF trailer missing or malformed")
        return context


class DeepStructureStep(PipelineStep):
    """Builds the object graph and enforces resource ceilings (PDF bombs)."""

    def __init__(self, analyzer: StructuralAnalyzer, ceilings: ResourceCeilings) -> None:
        self._analyzer = analyzer
        self._ceilings = ceilings

    def run(self, context: PipelineContext) -> PipelineContext:
        structure = self._analyzer.analyze(context.source_path)
        context.structure = structure
        context.findings.extend(self._ceilings.check(structure))
        if structure.incremental_updates:
            context.add(
                Category.STRUCTURAL,
                Severity.SUSPICIOUS,
                f"Multiple XRef sections ({structure.xref_sections}): incremental update detected",
            )
        return context


class CrossParserStep(PipelineStep):
    """A second parser must see the same document qpdf sees."""

    def __init__(self, counter: BasePageCounter) -> None:
        self._counter = counter

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.structure is None:
            return context
        if any(f.is_critical for f in context.findings):
            Log.info(f"[{context.batch_id}] cross-check skipped: document already blocked")
            return context
        try:
            pages = self._counter.count_pages(context.source_path)
        except PageCountError as exc:
            Log.info(f"[{context.batch_id}] cross-check parser failed: {exc}")
            context.add(
                Category.STRUCTURAL,
                Severity.SUSPICIOUS,
                f"{self._counter.name} could not parse the document (parser differential)",
            )
            return context
        if pages != context.structure.page_count:
            context.add(
                Category.STRUCTURAL,
                Severity.SUSPICIOUS,
                f"Parser differential: qpdf sees {context.structure.page_count} page(s), "
                f"{self._counter.name} sees {pages}",
            )
        return context


class SemanticStep(PipelineStep):
    def __init__(self, scanner: SemanticScanner) -> None:
        self._scanner = scanner

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.structure is not None:
            context.findings.extend(self._scanner.scan(context.structure.objects))
        return context
