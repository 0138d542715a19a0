from .enhancer import (
    MetadataEnhancer,
    TemplateMetadataEnhancer,
    ChatModelMetadataEnhancer,
    build_enhancer,
)
from .models import LLMConfig

__all__ = [
    "MetadataEnhancer",
    "TemplateMetadataEnhancer",
    "ChatModelMetadataEnhancer",
    "build_enhancer",
    "LLMConfig",
]
