"""Domain value objects."""

from previewspot.domain.value_objects.fallback_terms import (
    DEFAULT_FALLBACK_TERMS,
    FallbackTermRegistry,
    FallbackTermSet,
)

__all__ = [
    "DEFAULT_FALLBACK_TERMS",
    "FallbackTermRegistry",
    "FallbackTermSet",
]
