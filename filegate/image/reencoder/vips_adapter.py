from pathlib import Path

from filegate.config.settings import Settings
from filegate.image.reencoder.base import BaseImageReencoder
from filegate.logging.logger import Log
from filegate.pipeline.exceptions import SanitizationFailure
from filegate.sandbox.process_sandbox import ProcessSandbox

# only these loaders accept the page-count option
MULTI_FRAME_SUFFIXES = frozenset({".gif", ".webp"})


class VipsReencoder(BaseImageReencoder):
    """Re-encodes with the libvips CLI in a time-boxed child process."""

    name = "vips"

    def __init__(self, sandbox: ProcessSandbox, vips_binary: str = "vips") -> None:
        self._sandbox = sandbox
        self._vips = vips_binary

    @classmethod
    def from_settings(cls, settings: Settings) -> "VipsReencoder":
        sandbox = ProcessSandbox(default_timeout=settings.image_tool_timeout_seconds)
        return cls(sandbox, settings.vips_binary)

    def reencode(self, source: Path, target: Path) -> None:
        load = f"{source}[n=1]" if source.suffix.lower() in MULTI_FRAME_SUFFIXES else str(source)
        result = self._sandbox.run([self._vips, "copy", load, f"{target}[strip]"])
        if not result.succeeded() or not target.exists():
            target.unlink(missing_ok=True)
            Log.warning(
                f"vips copy failed (exit {result.exit_code}, timed out: {result.timed_out}): "
                f"{result.stderr[:500].decode('utf-8', 'replace')}"
            )
            raise SanitizationFailure("Image could not be decoded and re-encoded")
