"""Title and author cleanup, and the comparison keys built from them.

Two levels of normalization live here:

- ``clean_title`` / ``clean_author`` remove non-bibliographic noise that
  e-book files drag into the export (library tags, download codes, file
  extensions) while keeping the text human-readable. Cleaned strings are
  what gets sent to the catalog search.
- ``normalize_title`` / ``normalize_author`` build comparison keys: case-folded,
  punctuation stripped, whitespace collapsed. They never unify distinct titles
  ("1984" and "Nineteen Eighty-Four" stay different keys); that is the job of
  the alias table.
"""

import re

from common.constants import PLACEHOLDER_AUTHORS

# (Z-Library), [z-lib.org], (libgen.rs), [Anna's Archive] ...
LIBRARY_TAG_PATTERN = re.compile(
    r"[\(\[]\s*(?:z-?lib(?:rary)?|libgen|anna'?s archive|pdfdrive|ebook-?hunter|oceanofpdf)[^\)\]]*[\)\]]",
    re.IGNORECASE,
)
# Long download/run codes like VSBTXDMVTWR6EBF5FI4L7R7WVWBOISPC
RUN_CODE_PATTERN = re.compile(r"(?:^|\s)[A-Z0-9_-]{20,}(?=\s|$)")
TRAILING_PARENTHETICAL_PATTERN = re.compile(r"\s*\([^()]*\)\s*$")
FILE_EXTENSION_PATTERN = re.compile(r"\.(?:epub|mobi|pdf|azw3?|kfx|txt)\s*$", re.IGNORECASE)
AUTHOR_SEPARATOR_PATTERN = re.compile(r"\s*(?:;|&|\band\b)\s*", re.IGNORECASE)
PUNCTUATION_PATTERN = re.compile(r"[^\w\s]")
UNDERSCORE_PATTERN = re.compile(r"_+")
WHITESPACE_PATTERN = re.compile(r"\s+")


def _collapse(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def clean_title(title: str) -> str:
    """Strip non-bibliographic noise from a raw title.

    Args:
        title: Title as it appears in the export

    Returns:
        Cleaned, human-readable title. Falls back to the collapsed input when
        cleaning would leave nothing.

    Example:
        >>> clean_title("Dune (Z-Library).epub")
        'Dune'
        >>> clean_title("Sapiens VSBTXDMVTWR6EBF5FI4L7R7WVWBOISPC")
        'Sapiens'
    """
    cleaned = LIBRARY_TAG_PATTERN.sub(" ", title)
    cleaned = FILE_EXTENSION_PATTERN.sub("", cleaned.strip())
    cleaned = RUN_CODE_PATTERN.sub(" ", cleaned)
    cleaned = FILE_EXTENSION_PATTERN.sub("", cleaned.strip())
    # A second parenthetical left behind by filename-derived titles is the author
    cleaned = TRAILING_PARENTHETICAL_PATTERN.sub("", cleaned)
    cleaned = _collapse(cleaned)
    return cleaned or _collapse(title)


def clean_author(author: str | None) -> str | None:
    """Strip noise from a raw author; None when there is no real author.

    Example:
        >>> clean_author("Unknown Author") is None
        True
        >>> clean_author("Orwell, George (Z-Library)")
        'Orwell, George'
    """
    if author is None:
        return None
    cleaned = LIBRARY_TAG_PATTERN.sub(" ", author)
    cleaned = _collapse(cleaned.replace(";", " "))
    if cleaned.lower() in PLACEHOLDER_AUTHORS:
        return None
    return cleaned


def split_authors(author: str | None) -> list[str]:
    """Split a combined author string on ';', '&' and 'and'."""
    if author is None or author.strip().lower() in PLACEHOLDER_AUTHORS:
        return []
    parts = [_collapse(part) for part in AUTHOR_SEPARATOR_PATTERN.split(author)]
    return [part for part in parts if part and part.lower() not in PLACEHOLDER_AUTHORS]


def normalize_title(title: str) -> str:
    """Build the comparison key for a title.

    Case-folds, strips punctuation (underscores included), collapses whitespace.

    Example:
        >>> normalize_title(" 1984! ") == normalize_title("1984")
        True
    """
    key = PUNCTUATION_PATTERN.sub("", title.casefold())
    key = UNDERSCORE_PATTERN.sub(" ", key)
    return _collapse(key)


def normalize_author(author: str | None) -> str:
    """Build the comparison key for an author name ('' for no author)."""
    if author is None:
        return ""
    return normalize_title(author)
