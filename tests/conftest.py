import io
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from filegate.config.settings import Settings
from filegate.pipeline.base import PipelineContext
from filegate.pipeline.models import UploadCandidate
from filegate.sandbox.process_sandbox import ToolResult


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Hello PDF World")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a two-page PDF with known text on each page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Page one content")
    c.showPage()
    c.drawString(72, 720, "Page two content")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.effect_noise((64, 48), 60).convert("RGB").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def jpeg_with_exif_bytes() -> bytes:
    """JPEG carrying an EXIF block (camera make) that sanitization must drop."""
    image = Image.new("RGB", (80, 60), (10, 120, 200))
    exif = Image.Exif()
    exif[0x010F] = "SpyCam"  # Make
    buf = io.BytesIO()
    image.save(buf, format="JPEG", exif=exif.tobytes())
    return buf.getvalue()


@pytest.fixture()
def animated_gif_bytes() -> bytes:
    """Three-frame animated GIF."""
    frames = [Image.effect_noise((64, 64), sigma).convert("RGB") for sigma in (20, 40, 60)]
    buf = io.BytesIO()
    frames[0].save(
        buf,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=100,
        loop=0,
    )
    return buf.getvalue()


@pytest.fixture()
def clean_csv_bytes() -> bytes:
    return (
        b"name,email,salary\r\n"
        b"Alice,alice@example.com,5000\r\n"
        b"Bob,bob@example.org,4200.50\r\n"
    )


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        quarantine_dir=tmp_path / "quarantine",
        storage_dir=tmp_path / "storage",
        image_engine="pillow",
        pdf_cross_check_engine="none",
    )


@pytest.fixture()
def make_context(tmp_path: Path) -> Callable[..., PipelineContext]:
    """Build a PipelineContext with the upload already written to quarantine."""

    def _make(data: bytes, filename: str, sniffed_mime: str) -> PipelineContext:
        extension = filename.rsplit(".", 1)[-1].lower()
        source = tmp_path / f"source.{extension}"
        source.write_bytes(data)
        return PipelineContext(
            batch_id="batch-1",
            candidate=UploadCandidate(data=data, filename=filename, declared_size=len(data)),
            extension=extension,
            sniffed_mime=sniffed_mime,
            source_path=source,
            output_path=tmp_path / f"output.{extension}",
            original_sha256="f" * 64,
        )

    return _make


@pytest.fixture()
def qpdf_json() -> Callable[..., bytes]:
    """Render a qpdf ``--json=2`` document for the given objects."""

    def _render(
        objects: dict[str, Any],
        streams: dict[str, Any] | None = None,
        pages: int = 1,
    ) -> bytes:
        graph: dict[str, Any] = {f"obj:{key}": {"value": value} for key, value in objects.items()}
        for key, stream_dict in (streams or {}).items():
            graph[f"obj:{key}"] = {"stream": {"dict": stream_dict}}
        graph["trailer"] = {"value": {"/Root": "1 0 R", "/Size": len(graph) + 1}}
        document = {
            "version": 2,
            "pages": [{"object": f"{index + 3} 0 R"} for index in range(pages)],
            "qpdf": [{"jsonversion": 2, "pdfversion": "1.7"}, graph],
        }
        return json.dumps(document).encode()

    return _render


@pytest.fixture()
def tool_ok() -> Callable[..., ToolResult]:
    def _result(stdout: bytes = b"", exit_code: int = 0, timed_out: bool = False) -> ToolResult:
        return ToolResult(
            args=("tool",), exit_code=exit_code, stdout=stdout, stderr=b"", timed_out=timed_out
        )

    return _result
