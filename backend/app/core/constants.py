"""
Shared constants for the backend application.
"""

# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------
MAX_PER_SLOT_LIMIT = 1000

# Compare-and-set attempts before an atomic delta gives up under contention
ATOMIC_DELTA_ATTEMPTS = 5

# ---------------------------------------------------------------------------
# Hours resolution sources
# ---------------------------------------------------------------------------
SOURCE_OVERRIDE = "override"
SOURCE_RULE = "rule"
SOURCE_DEFAULT = "default"

MINUTES_PER_DAY = 24 * 60
