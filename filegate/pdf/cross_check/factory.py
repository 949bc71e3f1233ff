from filegate.config.settings import Settings
from filegate.pdf.cross_check.base import BasePageCounter
from filegate.pdf.cross_check.pdfplumber_adapter import PdfPlumberPageCounter
from filegate.pdf.cross_check.pymupdf_adapter import PyMuPdfPageCounter
from filegate.pdf.cross_check.sandboxed import SandboxedPageCounter
from filegate.sandbox.process_sandbox import ProcessSandbox


class PageCounterFactory:
    """Creates the cross-check parser based on settings. ``none`` disables it.

    ``ADAPTERS`` are the in-process counters; the pipeline only ever gets
    them wrapped in a ``SandboxedPageCounter``.
    """

    ADAPTERS: dict[str, type[BasePageCounter]] = {
        "pdfplumber": PdfPlumberPageCounter,
        "pymupdf": PyMuPdfPageCounter,
    }

    @classmethod
    def create(cls, settings: Settings, sandbox: ProcessSandbox) -> BasePageCounter | None:
        engine = settings.pdf_cross_check_engine.lower()
        if engine == "none":
            return None
        if engine not in cls.ADAPTERS:
            raise ValueError(
                f"Unknown cross-check engine '{engine}'. Choose from: {[*cls.ADAPTERS, 'none']}"
            )
        return SandboxedPageCounter(engine, sandbox)
