"""
Text Metrics

Pure helpers for counting, slicing and scanning plain strings. Nothing here
knows about paragraphs or document trees.
"""


def clamp(value: int, length: int) -> int:
    """Clamp ``value`` into ``[0, length]``."""
    return max(0, min(value, length))


def is_blank(text: str | None) -> bool:
    return not text or not text.strip()


def expand_to_word_start(text: str, offset: int) -> int:
    """Move ``offset`` backward while the preceding character is not whitespace."""
    new_offset = clamp(offset, len(text))
    while new_offset > 0 and not text[new_offset - 1].isspace():
        new_offset -= 1
    return new_offset


def expand_to_word_end(text: str, offset: int) -> int:
    """Move ``offset`` forward while the following character is not whitespace."""
    new_offset = clamp(offset, len(text))
    while new_offset < len(text) and not text[new_offset].isspace():
        new_offset += 1
    return new_offset


def take_last(text: str, length: int) -> str:
    if length <= 0:
        return ""
    return text[-length:]


def take_first(text: str, length: int) -> str:
    if length <= 0:
        return ""
    return text[:length]


def find_unique(haystack: str, needle: str) -> int | None:
    """
    Return the index of ``needle`` in ``haystack`` if it occurs exactly once.

    An empty needle, no match or more than one match all return None, so
    callers can fall back to a positional walk.
    """
    if not needle:
        return None
    first = haystack.find(needle)
    if first < 0:
        return None
    if haystack.find(needle, first + 1) >= 0:
        return None
    return first
