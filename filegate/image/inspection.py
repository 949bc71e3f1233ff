import io
import re
import warnings

from PIL import Image

from filegate.inspection.signatures import Signature
from filegate.pipeline.exceptions import PolicyRejection, StructuralRejection
from filegate.pipeline.models import Severity

IMAGE_MAGIC: dict[str, list[re.Pattern[bytes]]] = {
    "image/jpeg": [re.compile(rb"\A\xff\xd8\xff")],
    "image/png": [re.compile(rb"\A\x89PNG\r\n\x1a\n")],
    "image/gif": [re.compile(rb"\AGIF87a"), re.compile(rb"\AGIF89a")],
    "image/webp": [re.compile(rb"\ARIFF.{4}WEBP", re.DOTALL)],
}

# graphic control extension followed by an image descriptor: one per frame
GIF_FRAME_PATTERN = re.compile(rb"\x00\x21\xF9\x04.{4}\x00\x2c", re.DOTALL)

IMAGE_PAYLOAD_SIGNATURES: list[Signature] = [
    Signature.literal(name, needle, Severity.SUSPICIOUS, description, ignore_case=True)
    for name, needle, description in (
        ("php", b"<?php", "PHP open tag"),
        ("php-short", b"<? ", "Short PHP open tag"),
        ("script", b"<script", "HTML script tag"),
        ("javascript-uri", b"javascript:", "javascript: URI"),
        ("onload", b"onload=", "onload handler"),
        ("onerror", b"onerror=", "onerror handler"),
        ("eval", b"eval(", "eval() call"),
        ("base64-decode", b"base64_decode", "base64_decode() call"),
    )
]


def verify_magic_bytes(data: bytes, mime: str) -> bool:
    """True when the leading bytes match the signature of ``mime``."""
    return any(pattern.match(data) for pattern in IMAGE_MAGIC.get(mime, []))


def is_animated_gif(data: bytes) -> bool:
    return len(GIF_FRAME_PATTERN.findall(data)) > 1


class DimensionGuard:
    """Reads width and height from the header without decoding pixel data."""

    def __init__(self, max_width: int, max_height: int, max_pixels: int) -> None:
        self._max_width = max_width
        self._max_height = max_height
        self._max_pixels = max_pixels

    def measure(self, data: bytes) -> tuple[int, int]:
        """Raises:
        StructuralRejection: if the header cannot be read.
        PolicyRejection: if Pillow refuses the header as a decompression bomb.
        """
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", Image.DecompressionBombWarning)
                with Image.open(io.BytesIO(data)) as image:
                    return image.size
        except Image.DecompressionBombError as exc:
            raise PolicyRejection(str(exc), code="dimensions-exceeded") from exc
        except (OSError, ValueError, SyntaxError) as exc:
            raise StructuralRejection(f"Image header unreadable: {exc}") from exc

    def check(self, width: int, height: int) -> None:
        """Raises:
        PolicyRejection: if either side or the pixel total is over its ceiling.
        """
        if width > self._max_width or height > self._max_height:
            raise PolicyRejection(
                f"Dimensions {width}x{height} exceed {self._max_width}x{self._max_height}",
                code="dimensions-exceeded",
            )
        if width * height > self._max_pixels:
            raise PolicyRejection(
                f"Pixel count {width * height} exceeds {self._max_pixels}",
                code="dimensions-exceeded",
            )
