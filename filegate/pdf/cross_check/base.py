from abc import ABC, abstractmethod
from pathlib import Path


class BasePageCounter(ABC):
    """Contract for the second, independent PDF parser."""

    name: str

    @abstractmethod
    def count_pages(self, path: Path) -> int:
        """Count pages in the PDF at ``path``.

        Raises:
            PageCountError: if the parser rejects the document.
        """
