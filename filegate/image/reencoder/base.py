from abc import ABC, abstractmethod
from pathlib import Path

from filegate.config.settings import Settings


class BaseImageReencoder(ABC):
    """Contract for decode-and-reencode adapters.

    The output keeps exactly the first frame and carries no metadata or
    ICC profile. Its format follows the extension of ``target``.
    """

    name: str

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: Settings) -> "BaseImageReencoder":
        """Build the adapter from settings."""

    @abstractmethod
    def reencode(self, source: Path, target: Path) -> None:
        """Decode ``source`` and write a clean re-encoding to ``target``.

        Raises:
            SanitizationFailure: if the image cannot be decoded or written.
        """
