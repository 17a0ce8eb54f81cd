"""Shared constants for the clippings importer.

For environment-based configuration (database path, catalog settings, etc.),
use the env module:
    from common.env import env
    timeout = env.catalog_timeout()
"""

# Line that separates one clipping block from the next
ENTRY_SEPARATOR = "=========="

# Author assigned to a title line with no trailing parenthetical
UNKNOWN_AUTHOR = "Unknown Author"

# Author strings that carry no bibliographic information
PLACEHOLDER_AUTHORS: set[str] = {"", "unknown", "unknown author"}

# Confidence bands for canonical matching
AUTO_LINK_THRESHOLD = 0.90
CONFIRM_THRESHOLD = 0.70

# Source flows recorded on canonical link audits
SOURCE_FLOW_IMPORT = "clippings-import"
SOURCE_FLOW_MANUAL = "manual-resolve"
SOURCE_FLOW_CONFIRMATION = "user-confirmation"
