"""Reading content storage and word counting."""

from .manager import ContentManager, count_words, extract_title

__all__ = [
    "ContentManager",
    "count_words",
    "extract_title",
]
