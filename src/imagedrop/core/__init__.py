"""Core functionality for imagedrop.

- **formats**: Detects how an image payload was encoded and normalizes it to
  a data URL
- **store**: Namespaced in-memory object store and the :class:`Record` type
- **enrichment**: Background analysis of stored images
- **analysis**: Image analysis capability (Gemini over HTTP)
- **gallery**: Newest-first listings of images and texts
- **errors**: Error taxonomy shared by the core and the API
- **config**: Configuration management using Pydantic Settings
"""

from imagedrop.core.config import ImagedropConfig, config
from imagedrop.core.enrichment import EnrichmentRunner
from imagedrop.core.formats import NormalizedPayload, PayloadFormat, normalize
from imagedrop.core.store import ANALYSIS_PENDING, ObjectStore, Record

__all__ = [
    "ANALYSIS_PENDING",
    "EnrichmentRunner",
    "ImagedropConfig",
    "NormalizedPayload",
    "ObjectStore",
    "PayloadFormat",
    "Record",
    "config",
    "normalize",
]
