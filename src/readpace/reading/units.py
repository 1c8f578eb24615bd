"""Partitioning of reading content into display units.

A unit is what the reader sees at once: a single word, a group of
``chunk_size`` consecutive words, or a whole paragraph. Words are
whitespace-delimited tokens with punctuation left attached; paragraphs are
separated by one or more blank lines.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..db.schemas import ReadingMode

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

MS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class DisplayUnit:
    """One displayed piece of content."""

    index: int
    text: str
    word_count: int


def split_words(text: str) -> list[str]:
    """Split text into whitespace-delimited words."""
    return text.split()


def split_paragraphs(text: str) -> list[str]:
    """Split text into non-empty paragraphs."""
    return [p.strip() for p in PARAGRAPH_BREAK.split(text) if p.strip()]


def build_units(
    text: str, mode: ReadingMode | str, chunk_size: Optional[int] = None
) -> list[DisplayUnit]:
    """Partition text into display units for a reading mode.

    Args:
        text: Content body
        mode: word, chunk or paragraph
        chunk_size: Words per unit (chunk mode only)

    Returns:
        Units in reading order; the last chunk may hold fewer words
    """
    mode = ReadingMode(mode)

    if mode == ReadingMode.WORD:
        return [DisplayUnit(i, word, 1) for i, word in enumerate(split_words(text))]

    if mode == ReadingMode.CHUNK:
        if not chunk_size or chunk_size < 1:
            raise ValueError("chunk_size is required for chunk mode")
        words = split_words(text)
        return [
            DisplayUnit(i, " ".join(group), len(group))
            for i, group in enumerate(
                words[start : start + chunk_size] for start in range(0, len(words), chunk_size)
            )
        ]

    units = []
    for paragraph in split_paragraphs(text):
        word_count = len(split_words(paragraph))
        units.append(DisplayUnit(len(units), paragraph, word_count))
    return units


def unit_interval_ms(word_count: int, pace_wpm: int) -> float:
    """Milliseconds a unit of ``word_count`` words stays on screen.

    The effective word rate stays at ``pace_wpm`` whatever the unit size.
    """
    return MS_PER_MINUTE / pace_wpm * word_count


def total_words(units: list[DisplayUnit]) -> int:
    """Total number of words across units."""
    return sum(unit.word_count for unit in units)
