"""Content hashing for parsed entries and stored notes."""

import hashlib
import re

_WHITESPACE = re.compile(r"\s+")


def content_hash(text: str | None) -> str:
    """
    Generate a deterministic SHA256 hash of entry text.

    The text is case-folded and its whitespace collapsed first, so the same
    highlight exported with different line wrapping hashes identically.

    Args:
        text: Entry body (None and "" hash the same)

    Returns:
        SHA256 hash prefixed with "sha256:"
    """
    if text is not None and not isinstance(text, str):
        raise TypeError(f"content must be a string, got {type(text).__name__}")
    canonical = _WHITESPACE.sub(" ", (text or "").casefold()).strip()
    hash_obj = hashlib.sha256(canonical.encode("utf-8"))
    return f"sha256:{hash_obj.hexdigest()}"
