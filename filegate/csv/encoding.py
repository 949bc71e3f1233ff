import re
import unicodedata


class CellEncodingError(ValueError):
    """Raised when a cell is not safe, canonical UTF-8."""


class EncodingValidator:
    """Validates the raw UTF-8 of a cell and returns its NFC form.

    Cells arrive decoded with ``surrogateescape`` so the exact original bytes
    can be recovered and checked here, one cell at a time.
    """

    UTF7_PATTERN = re.compile(r"\+[A-Za-z0-9+/]+-")
    OVERLONG_PATTERN = re.compile(
        rb"[\xc0\xc1][\x80-\xbf]"
        rb"|\xe0[\x80-\x9f][\x80-\xbf]"
        rb"|\xf0[\x80-\x8f][\x80-\xbf]{2}"
    )

    def normalize(self, cell: str) -> str:
        raw = cell.encode("utf-8", "surrogateescape")
        if self.OVERLONG_PATTERN.search(raw):
            raise CellEncodingError("Overlong UTF-8 encoding")
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CellEncodingError("Invalid UTF-8 byte sequence") from exc
        if text.encode("utf-8") != raw:
            raise CellEncodingError("Non-canonical UTF-8 encoding")
        if self.UTF7_PATTERN.search(text):
            raise CellEncodingError("UTF-7 encoded sequence")
        return unicodedata.normalize("NFC", text)
