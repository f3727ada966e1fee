#!/usr/bin/env python3
"""Constants for correlation, conflict resolution and sync scheduling.

These values are the defaults used by SyncConfig. Timestamps across the
package are POSIX seconds (float).
"""

# Correlation windows in seconds.
# Handoff payloads arriving within this window of an existing record are
# treated as the same logical copy.
HANDOFF_WINDOW: float = 15.0

# Window for suppressing a local observation of content this device just
# produced itself (own copy or clipboard write-back).
ECHO_WINDOW: float = 2.0

# Two edits whose lastModified differ by less than this are simultaneous.
CONFLICT_WINDOW: float = 10.0

# Similarity fallback: maximum edit distance as a fraction of the longer text.
SIMILARITY_THRESHOLD: float = 0.10

# Texts shorter than this are only ever matched exactly.
MIN_SIMILARITY_LENGTH: int = 3

# Texts longer than this skip the edit-distance fallback (quadratic cost).
MAX_SIMILARITY_LENGTH: int = 4096

# Maximum number of recent observation events kept by the echo guard.
MAX_RECENT_EVENTS: int = 50

# Client pull interval while foregrounded, in seconds.
POLL_INTERVAL: float = 5.0

# Retry parameters for exponential backoff of stuck queue drains.
# Initial delay between attempts in seconds.
RETRY_INITIAL_WAIT: float = 1.0

# Maximum delay between attempts in seconds.
RETRY_MAX_WAIT: float = 300.0

# Multiplier for exponential backoff (delay = initial * multiplier^attempt).
RETRY_MULTIPLIER: float = 2.0

# Upper bound on waiting for the shared store during canonical ID
# resolution before falling back to a new canonical ID.
CORRELATION_TIMEOUT: float = 5.0
