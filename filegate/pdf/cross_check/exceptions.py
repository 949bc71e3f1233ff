class PageCountError(Exception):
    """Raised when an independent parser cannot open the document."""
