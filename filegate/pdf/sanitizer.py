import tempfile
from pathlib import Path

from filegate.logging.logger import Log
from filegate.pdf.structure import QPDF_OK_CODES
from filegate.pipeline.exceptions import SanitizationFailure
from filegate.sandbox.process_sandbox import ProcessSandbox


class QpdfLinearizer:
    """Primary sanitizer: full rewrite that drops incremental updates and metadata."""

    def __init__(self, sandbox: ProcessSandbox, flags: list[str], qpdf_binary: str = "qpdf") -> None:
        self._sandbox = sandbox
        self._flags = flags
        self._qpdf = qpdf_binary

    def rewrite(self, source: Path, target: Path) -> None:
        """Raises:
        SanitizationFailure: if qpdf fails or produces no output.
        """
        result = self._sandbox.run([self._qpdf, *self._flags, str(source), str(target)])
        if not result.succeeded(QPDF_OK_CODES) or not target.exists():
            target.unlink(missing_ok=True)
            Log.warning(
                f"qpdf rewrite failed (exit {result.exit_code}, timed out: {result.timed_out}): "
                f"{result.stderr[:500].decode('utf-8', 'replace')}"
            )
            raise SanitizationFailure("qpdf could not rewrite the PDF")


class RasterFlattener:
    """Fallback sanitizer: render every page to PNG and rebuild an image-only PDF."""

    def __init__(
        self,
        sandbox: ProcessSandbox,
        dpi: int = 150,
        pdftoppm_binary: str = "pdftoppm",
        img2pdf_binary: str = "img2pdf",
    ) -> None:
        self._sandbox = sandbox
        self._dpi = dpi
        self._pdftoppm = pdftoppm_binary
        self._img2pdf = img2pdf_binary

    def flatten(self, source: Path, target: Path) -> None:
        """Raises:
        SanitizationFailure: if rendering or rebuilding fails.
        """
        with tempfile.TemporaryDirectory(prefix="filegate-flatten-") as workdir:
            prefix = Path(workdir) / "page"
            render = self._sandbox.run(
                [self._pdftoppm, "-png", "-r", str(self._dpi), str(source), str(prefix)]
            )
            pages = sorted(Path(workdir).glob("page*.png"))
            if not render.succeeded() or not pages:
                raise SanitizationFailure("PDF pages could not be rendered")

            target.unlink(missing_ok=True)
            rebuild = self._sandbox.run(
                [self._img2pdf, *(str(page) for page in pages), "-o", str(target)]
            )
            if not rebuild.succeeded() or not target.exists():
                target.unlink(missing_ok=True)
                raise SanitizationFailure("PDF could not be rebuilt from rendered pages")
        Log.info(f"flattened {len(pages)} page(s) of {source.name} at {self._dpi} dpi")
