from typing import ClassVar

from filegate.config.settings import Settings
from filegate.image.inspection import (
    IMAGE_PAYLOAD_SIGNATURES,
    DimensionGuard,
    verify_magic_bytes,
)
from filegate.image.reencoder.base import BaseImageReencoder
from filegate.image.reencoder.factory import ReencoderFactory
from filegate.image.steps import AnimationStep, DimensionStep, MagicBytesStep
from filegate.inspection.magic_bytes import MagicByteInspector
from filegate.inspection.signatures import ContentSignatureScanner
from filegate.pipeline.base import BaseFilePipeline, PipelineContext, PipelineStep
from filegate.pipeline.exceptions import GatewayError
from filegate.pipeline.models import Category, Finding, Severity
from filegate.pipeline.steps import IngressStep, SignatureScanStep

IMAGE_ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
IMAGE_ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})


class ImagePipeline(BaseFilePipeline):
    """Decode-or-die: the stored image is always a fresh re-encoding."""

    engine: ClassVar[str] = "image"

    def __init__(
        self,
        steps: list[PipelineStep],
        reencoder: BaseImageReencoder,
        inspector: MagicByteInspector,
        guard: DimensionGuard,
        max_output_size: int,
    ) -> None:
        super().__init__(steps)
        self._reencoder = reencoder
        self._inspector = inspector
        self._guard = guard
        self._max_output_size = max_output_size

    def sanitize(self, context: PipelineContext) -> None:
        self._reencoder.reencode(context.source_path, context.output_path)
        context.output_mime = context.sniffed_mime

    def verify(self, context: PipelineContext) -> list[Finding]:
        data = context.output_path.read_bytes()
        findings: list[Finding] = []

        mime = self._inspector.sniff(data)
        if mime != context.sniffed_mime or not verify_magic_bytes(data, mime):
            findings.append(
                Finding(
                    Category.STRUCTURAL,
                    Severity.CRITICAL,
                    f"Re-encoded output identifies as {mime}, expected {context.sniffed_mime}",
                )
            )
        if len(data) > self._max_output_size:
            findings.append(
                Finding(
                    Category.DIMENSION,
                    Severity.CRITICAL,
                    f"Re-encoded output is {len(data)} bytes, limit {self._max_output_size}",
                )
            )
        try:
            width, height = self._guard.measure(data)
            self._guard.check(width, height)
        except GatewayError as exc:
            findings.append(Finding(Category.DIMENSION, Severity.CRITICAL, str(exc)))
        return findings


def build_image_pipeline(settings: Settings, inspector: MagicByteInspector) -> ImagePipeline:
    """Build the image pipeline from settings."""
    guard = DimensionGuard(
        max_width=settings.image_max_width,
        max_height=settings.image_max_height,
        max_pixels=settings.image_max_total_pixels,
    )
    steps: list[PipelineStep] = [
        IngressStep(
            min_size=settings.image_min_file_size,
            max_size=settings.image_max_file_size,
            allowed_mimes=IMAGE_ALLOWED_MIME_TYPES,
            allowed_extensions=IMAGE_ALLOWED_EXTENSIONS,
        ),
        MagicBytesStep(),
        DimensionStep(guard),
        AnimationStep(),
        SignatureScanStep(ContentSignatureScanner(IMAGE_PAYLOAD_SIGNATURES)),
    ]
    return ImagePipeline(
        steps=steps,
        reencoder=ReencoderFactory.create(settings),
        inspector=inspector,
        guard=guard,
        max_output_size=settings.image_max_file_size,
    )
