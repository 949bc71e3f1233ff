import re
import secrets
from dataclasses import dataclass, field
from pathlib import Path

from filegate.logging.logger import Log
from filegate.pipeline.models import SanitizedArtifact

TOKEN_PATTERN = re.compile(r"^[a-f0-9]{32}\.[a-z0-9]+$")

DOWNLOAD_MIME_TYPES = {
    "pdf": "application/pdf",
    "csv": "text/csv",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


class ArtifactNotFoundError(LookupError):
    """Raised when a download token is malformed or names no stored file."""


@dataclass
class DownloadResponse:
    """Body plus the headers that force a sandboxed download."""

    body: bytes
    media_type: str
    headers: dict[str, str] = field(default_factory=dict)


def new_token(extension: str) -> str:
    return f"{secrets.token_hex(16)}.{extension}"


class ArtifactStore:
    """Write-once quarantine and final storage areas with random file names.

    Every write uses exclusive create, so two requests can never land on
    the same file even if a token were to repeat.
    """

    MAX_NAME_ATTEMPTS = 3

    def __init__(self, quarantine_dir: Path, storage_dir: Path) -> None:
        self._quarantine_dir = quarantine_dir
        self._storage_dir = storage_dir

    def ensure_directories(self) -> None:
        for directory in (self._quarantine_dir, self._storage_dir):
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)

    def quarantine(self, data: bytes, extension: str) -> Path:
        """Write raw upload bytes to the quarantine area."""
        return self._write_new(self._quarantine_dir, data, extension)

    def scratch_path(self, extension: str) -> Path:
        """A fresh, not yet existing quarantine path for sanitizer output."""
        return self._quarantine_dir / new_token(extension)

    def store(self, artifact: SanitizedArtifact) -> str:
        """Move sanitized bytes to final storage and return the download token."""
        path = self._write_new(self._storage_dir, artifact.data, artifact.extension)
        return path.name

    def delete(self, token: str) -> None:
        if TOKEN_PATTERN.match(token):
            (self._storage_dir / token).unlink(missing_ok=True)

    def open_artifact(self, token: str) -> DownloadResponse:
        """Serve a stored artifact by token.

        Raises:
            ArtifactNotFoundError: if the token is malformed or unknown.
        """
        if not TOKEN_PATTERN.match(token):
            raise ArtifactNotFoundError("Invalid artifact token")
        extension = token.rsplit(".", 1)[1]
        media_type = DOWNLOAD_MIME_TYPES.get(extension)
        if media_type is None:
            raise ArtifactNotFoundError("Invalid artifact token")
        try:
            body = (self._storage_dir / token).read_bytes()
        except FileNotFoundError as exc:
            raise ArtifactNotFoundError("Artifact not found") from exc

        return DownloadResponse(
            body=body,
            media_type=media_type,
            headers={
                "Content-Type": media_type,
                "Content-Disposition": f'attachment; filename="{token}"',
                "Content-Security-Policy": "sandbox",
                "X-Content-Type-Options": "nosniff",
                "Content-Length": str(len(body)),
            },
        )

    def _write_new(self, directory: Path, data: bytes, extension: str) -> Path:
        for _ in range(self.MAX_NAME_ATTEMPTS):
            path = directory / new_token(extension)
            try:
                with path.open("xb") as handle:
                    handle.write(data)
            except FileExistsError:
                Log.warning(f"storage token collision in {directory.name}, retrying")
                continue
            except OSError:
                # never leave a truncated file behind a valid token
                path.unlink(missing_ok=True)
                raise
            path.chmod(0o600)
            return path
        raise FileExistsError(f"could not allocate a unique name in {directory}")
