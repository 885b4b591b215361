# ABOUTME: Makes the shared common package importable across analytics and content code.
# ABOUTME: Re-exports the error hierarchy for convenience.

from .errors import (
    AnalyticsError,
    BlockParseError,
    ContentParseError,
    DocumentNotFoundError,
    FatalSeedingError,
    GeneratorError,
    JourneyError,
)

__all__ = [
    "AnalyticsError",
    "BlockParseError",
    "ContentParseError",
    "DocumentNotFoundError",
    "FatalSeedingError",
    "GeneratorError",
    "JourneyError",
]
