from pathlib import Path

from PIL import Image

from filegate.config.settings import Settings
from filegate.image.reencoder.base import BaseImageReencoder
from filegate.pipeline.exceptions import SanitizationFailure

SAVE_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".gif": "GIF",
    ".webp": "WEBP",
}


class PillowReencoder(BaseImageReencoder):
    """Re-encodes in process with Pillow.

    Pixels are copied into a brand new image, so nothing from the source
    ``info`` dict (EXIF, ICC, comments, XMP) can reach the output.
    """

    name = "pillow"

    def __init__(self, max_pixels: int) -> None:
        self._max_pixels = max_pixels

    @classmethod
    def from_settings(cls, settings: Settings) -> "PillowReencoder":
        return cls(max_pixels=settings.image_max_total_pixels)

    def reencode(self, source: Path, target: Path) -> None:
        save_format = SAVE_FORMATS.get(target.suffix.lower())
        if save_format is None:
            raise SanitizationFailure(f"No encoder for {target.suffix}")
        try:
            with Image.open(source) as image:
                width, height = image.size
                if width * height > self._max_pixels:
                    raise SanitizationFailure(f"Pixel count {width * height} over limit")
                image.seek(0)
                frame = image.convert("RGBA" if _has_alpha(image) else "RGB")
            if save_format == "JPEG" and frame.mode == "RGBA":
                frame = frame.convert("RGB")
            clean = Image.frombytes(frame.mode, frame.size, frame.tobytes())
            with target.open("xb") as handle:
                clean.save(handle, format=save_format)
        except SanitizationFailure:
            target.unlink(missing_ok=True)
            raise
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
            target.unlink(missing_ok=True)
            raise SanitizationFailure(f"Pillow re-encode failed: {exc}") from exc


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info
