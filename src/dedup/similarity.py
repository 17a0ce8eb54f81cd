"""Text similarity used to compare entries that share a location bucket."""

import re

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Case-fold, strip punctuation and collapse whitespace."""
    return _WHITESPACE.sub(" ", _PUNCTUATION.sub("", text.casefold())).strip()


def text_similarity(text1: str, text2: str) -> float:
    """Word-set Jaccard similarity between two texts.

    Identical normalized strings score exactly 1.0 regardless of formatting,
    so two empty texts are identical.

    Example:
        >>> text_similarity("The quick, brown fox.", "the quick brown fox")
        1.0
        >>> text_similarity("a b c d", "a b c e")
        0.6
    """
    norm1 = normalize_text(text1)
    norm2 = normalize_text(text2)
    if norm1 == norm2:
        return 1.0

    words1 = set(norm1.split())
    words2 = set(norm2.split())
    union = words1 | words2
    if not union:
        return 1.0
    return len(words1 & words2) / len(union)
