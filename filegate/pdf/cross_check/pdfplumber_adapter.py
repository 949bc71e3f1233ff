from pathlib import Path

import pdfplumber

from filegate.pdf.cross_check.base import BasePageCounter
from filegate.pdf.cross_check.exceptions import PageCountError


class PdfPlumberPageCounter(BasePageCounter):
    """Counts pages with pdfminer via pdfplumber."""

    name = "pdfplumber"

    def count_pages(self, path: Path) -> int:
        try:
            with pdfplumber.open(path) as pdf:
                return len(pdf.pages)
        except Exception as exc:
            raise PageCountError(f"pdfplumber could not open document: {exc}") from exc
