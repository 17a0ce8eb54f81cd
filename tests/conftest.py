"""Shared fixtures: a small clippings export and an in-memory store."""

import pytest

from load.db import SQLiteAdapter
from load.store import ReadingStore

SAMPLE_EXPORT = """\ufeffNineteen Eighty-Four (George Orwell)
- Your Highlight on page 3 | location 15-16 | Added on Sunday, December 15, 2024 3:45:00 PM

It was a bright cold day in April, and the clocks were striking thirteen.
==========
Nineteen Eighty-Four (George Orwell)
- Your Note on page 3 | location 16 | Added on Sunday, December 15, 2024 3:46:00 PM

The famous opening line
==========
Standalone Book
- Your Bookmark on page 10 | Added on Monday, December 16, 2024 9:00:00 AM


==========
"""


@pytest.fixture
def sample_export():
    return SAMPLE_EXPORT


@pytest.fixture
def store():
    """Fresh in-memory store with the schema created."""
    reading_store = ReadingStore(SQLiteAdapter(":memory:"))
    yield reading_store
    reading_store.close()
