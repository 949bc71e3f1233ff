from pathlib import Path

import pymupdf

from filegate.pdf.cross_check.base import BasePageCounter
from filegate.pdf.cross_check.exceptions import PageCountError


class PyMuPdfPageCounter(BasePageCounter):
    """Counts pages with MuPDF."""

    name = "pymupdf"

    def count_pages(self, path: Path) -> int:
        try:
            with pymupdf.open(path, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                if doc.needs_pass:
                    raise PageCountError("pymupdf: document is encrypted")
                return int(doc.page_count)
        except PageCountError:
            raise
        except Exception as exc:
            raise PageCountError(f"pymupdf could not open document: {exc}") from exc
