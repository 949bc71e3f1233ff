from filegate.image.inspection import DimensionGuard, is_animated_gif, verify_magic_bytes
from filegate.pipeline.base import PipelineContext, PipelineStep
from filegate.pipeline.models import Category, Severity


class MagicBytesStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        if not verify_magic_bytes(context.candidate.data, context.sniffed_mime):
            context.add(
                Category.STRUCTURAL,
                Severity.SUSPICIOUS,
                f"Leading bytes do not match the {context.sniffed_mime} signature",
            )
        return context


class DimensionStep(PipelineStep):
    """Header-only size check, before any pixel data is decoded."""

    def __init__(self, guard: DimensionGuard) -> None:
        self._guard = guard

    def run(self, context: PipelineContext) -> PipelineContext:
        width, height = self._guard.measure(context.candidate.data)
        self._guard.check(width, height)
        context.image_size = (width, height)
        return context


class AnimationStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        if context.sniffed_mime == "image/gif" and is_animated_gif(context.candidate.data):
            context.add(
                Category.STRUCTURAL,
                Severity.INFO,
                "Animated GIF: only the first frame is kept",
            )
        return context
