from filegate.config.settings import Settings
from filegate.image.reencoder.base import BaseImageReencoder
from filegate.image.reencoder.pillow_adapter import PillowReencoder
from filegate.image.reencoder.vips_adapter import VipsReencoder


class ReencoderFactory:
    """Creates the image re-encoder based on settings."""

    ADAPTERS: dict[str, type[BaseImageReencoder]] = {
        "pillow": PillowReencoder,
        "vips": VipsReencoder,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseImageReencoder:
        engine = settings.image_engine.lower()
        adapter_cls = cls.ADAPTERS.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown image engine '{engine}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls.from_settings(settings)
