"""Source scanning: lexical extraction and false-positive filtering."""

from .extractor import Extractor, extract_from_text
from .name_filter import FilterConfig, FilterResult, NameFilter

__all__ = [
    "Extractor",
    "extract_from_text",
    "FilterConfig",
    "FilterResult",
    "NameFilter",
]
