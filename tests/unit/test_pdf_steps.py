from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from filegate.database.datastore import Datastore
from filegate.database.models import REPUTATION_MALICIOUS, ReputationEntry
from filegate.pdf.cross_check.base import BasePageCounter
from filegate.pdf.cross_check.exceptions import PageCountError
from filegate.pdf.steps import (
    CrossParserStep,
    DeepStructureStep,
    PdfHeaderStep,
    ReputationStep,
    TrailerStep,
)
from filegate.pdf.structure import PdfStructure, ResourceCeilings, StructuralAnalyzer
from filegate.pipeline.base import PipelineContext
from filegate.pipeline.exceptions import StructuralRejection
from filegate.pipeline.models import Category, Severity

MakeContext = Callable[..., PipelineContext]
CEILINGS = ResourceCeilings(max_objects=100, max_streams=10, max_pages=5)


def _structure(**overrides: object) -> PdfStructure:
    values: dict = {
        "object_count": 10,
        "stream_count": 2,
        "page_count": 1,
        "xref_sections": 1,
        "linearized": False,
    }
    values.update(overrides)
    return PdfStructure(**values)


def _counter(pages: int | None = None, error: Exception | None = None) -> MagicMock:
    counter = MagicMock(spec=BasePageCounter)
    counter.name = "pymupdf"
    if error is not None:
        counter.count_pages.side_effect = error
    else:
        counter.count_pages.return_value = pages
    return counter


class TestPdfHeaderStep:
    def test_accepts_header_at_offset_zero(
        self, make_context: MakeContext, sample_pdf_bytes: bytes
    ) -> None:
        context = make_context(sample_pdf_bytes, "a.pdf", "application/pdf")
        assert PdfHeaderStep().run(context) is context

    def test_rejects_leading_bytes(self, make_context: MakeContext, sample_pdf_bytes: bytes) -> None:
        context = make_context(b"GIF89a" + sample_pdf_bytes, "a.pdf", "application/pdf")
        with pytest.raises(StructuralRejection, match="polyglot"):
            PdfHeaderStep().run(context)


class TestReputationStep:
    def test_malicious_hash_is_critical(
        self, make_context: MakeContext, sample_pdf_bytes: bytes
    ) -> None:
        datastore = MagicMock(spec=Datastore)
        datastore.reputation_lookup.return_value = ReputationEntry(
            "f" * 64, REPUTATION_MALICIOUS, detection_count=4
        )
        context = make_context(sample_pdf_bytes, "a.pdf", "application/pdf")

        ReputationStep(datastore).run(context)

        datastore.reputation_lookup.assert_called_once_with("f" * 64)
        assert context.findings[0].category is Category.REPUTATION
        assert context.findings[0].is_critical

    def test_unknown_hash_adds_nothing(
        self, make_context: MakeContext, sample_pdf_bytes: bytes
    ) -> None:
        datastore = MagicMock(spec=Datastore)
        datastore.reputation_lookup.return_value = ReputationEntry("f" * 64)
        context = make_context(sample_pdf_bytes, "a.pdf", "application/pdf")

        ReputationStep(datastore).run(context)

        assert context.findings == []


class TestTrailerStep:
    def test_missing_eof_is_suspicious(self, make_context: MakeContext) -> None:
        context = make_context(b"%PDF-1.7\n" + b"0" * 2000, "a.pdf", "application/pdf")
        TrailerStep().run(context)
        assert context.findings[0].severity is Severity.SUSPICIOUS

    def test_eof_present(self, make_context: MakeContext, sample_pdf_bytes: bytes) -> None:
        context = make_context(sample_pdf_bytes, "a.pdf", "application/pdf")
        TrailerStep().run(context)
        assert context.findings == []


class TestDeepStructureStep:
    def _run(self, make_context: MakeContext, structure: PdfStructure) -> PipelineContext:
        analyzer = MagicMock(spec=StructuralAnalyzer)
        analyzer.analyze.return_value = structure
        context = make_context(b"%PDF-1.7\n", "a.pdf", "application/pdf")
        DeepStructureStep(analyzer, CEILINGS).run(context)
        return context

    def test_within_limits(self, make_context: MakeContext) -> None:
        context = self._run(make_context, _structure())
        assert context.findings == []
        assert context.structure is not None

    def test_ceilings_are_critical_structural(self, make_context: MakeContext) -> None:
        context = self._run(
            make_context, _structure(object_count=101, stream_count=11, page_count=6)
        )
        assert len(context.findings) == 3
        assert all(f.is_critical and f.category is Category.STRUCTURAL for f in context.findings)

    def test_incremental_update_is_suspicious(self, make_context: MakeContext) -> None:
        context = self._run(make_context, _structure(xref_sections=3))
        assert [f.severity for f in context.findings] == [Severity.SUSPICIOUS]

    def test_linearized_second_xref_is_expected(self, make_context: MakeContext) -> None:
        context = self._run(make_context, _structure(xref_sections=2, linearized=True))
        assert context.findings == []


class TestCrossParserStep:
    def test_agreement(self, make_context: MakeContext) -> None:
        context = make_context(b"%PDF-1.7\n", "a.pdf", "application/pdf")
        context.structure = _structure(page_count=2)
        CrossParserStep(_counter(pages=2)).run(context)
        assert context.findings == []

    def test_page_count_differential(self, make_context: MakeContext) -> None:
        context = make_context(b"%PDF-1.7\n", "a.pdf", "application/pdf")
        context.structure = _structure(page_count=2)
        CrossParserStep(_counter(pages=1)).run(context)
        assert context.findings[0].severity is Severity.SUSPICIOUS
        assert "qpdf sees 2" in context.findings[0].description

    def test_parser_failure_is_suspicious(self, make_context: MakeContext) -> None:
        context = make_context(b"%PDF-1.7\n", "a.pdf", "application/pdf")
        context.structure = _structure()
        CrossParserStep(_counter(error=PageCountError("broken"))).run(context)
        assert context.findings[0].severity is Severity.SUSPICIOUS

    def test_reads_quarantined_file(self, make_context: MakeContext) -> None:
        context = make_context(b"%PDF-1.7\n", "a.pdf", "application/pdf")
        context.structure = _structure()
        counter = _counter(pages=1)

        CrossParserStep(counter).run(context)

        counter.count_pages.assert_called_once_with(context.source_path)

    def test_skipped_once_a_ceiling_is_breached(self, make_context: MakeContext) -> None:
        context = make_context(b"%PDF-1.7\n", "a.pdf", "application/pdf")
        context.structure = _structure(page_count=10**6)
        context.findings.extend(CEILINGS.check(context.structure))
        counter = _counter(pages=1)

        CrossParserStep(counter).run(context)

        counter.count_pages.assert_not_called()
        assert len(context.findings) == 1


class TestResourceCeilings:
    def test_at_limit_is_fine(self) -> None:
        assert CEILINGS.check(_structure(object_count=100, stream_count=10, page_count=5)) == []

    def test_each_breach_is_reported(self) -> None:
        findings = CEILINGS.check(_structure(stream_count=11, page_count=6))
        assert [f.description for f in findings] == [
            "Stream count 11 exceeds safety threshold 10",
            "Page count 6 exceeds safety threshold 5",
        ]
