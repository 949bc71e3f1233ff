import threading

import magic

from filegate.pipeline.exceptions import SystemFailure


class MagicByteInspector:
    """Identifies the true MIME type of a payload from its content.

    Filenames and client-declared content types are never consulted.
    """

    SNIFF_BYTES = 8192

    def __init__(self) -> None:
        self._magic = magic.Magic(mime=True)
        # libmagic handles are not safe to share between threads
        self._lock = threading.Lock()

    def sniff(self, data: bytes) -> str:
        """Return the MIME type libmagic reports for the leading bytes.

        Raises:
            SystemFailure: if libmagic cannot classify the buffer.
        """
        if not data:
            return "application/x-empty"
        try:
            with self._lock:
                mime: str = self._magic.from_buffer(data[: self.SNIFF_BYTES])
        except magic.MagicException as exc:
            raise SystemFailure(f"libmagic failed: {exc}") from exc
        return mime.lower()
