"""Configuration constants.

Hard limits that are NOT user-configurable. Configurable defaults live in
models.py and are validated against these caps.
"""

# =============================================================================
# Retrieval
# =============================================================================

RETRIEVAL_MAX_CHARS_HARD = 80_000
"""Absolute ceiling for a single retrieval response."""

LIST_WORKSHOPS_MAX_LIMIT = 100
"""Maximum page size for workshop listing."""

TOPIC_SEARCH_MAX_LIMIT = 20
"""Maximum number of topic search matches."""

TOPIC_SEARCH_MIN_QUERY_CHARS = 3
"""Minimum trimmed query length for topic search."""

# =============================================================================
# Quiz
# =============================================================================

QUIZ_MAX_QUESTION_COUNT = 20
"""Largest question count a quiz protocol will target."""

QUIZ_DEFAULT_QUESTION_COUNT = 8

# =============================================================================
# Indexing
# =============================================================================

REINDEX_BATCH_MAX_SIZE = 20
"""Maximum repositories processed per reindex invocation."""

WORKSHOP_FILTER_MAX_COUNT = 100
"""Maximum number of slugs accepted in a reindex filter."""

MAX_STORED_SECTION_CHARS = 20_000
"""Section content beyond this is truncated before storage."""

SECTION_TRUNCATION_MARKER = "\n\n[truncated for storage]"

SECTION_ORDER_START = 10
"""Order key of the first section in every workshop."""

INDEX_RUN_ERROR_MAX_CHARS = 4000
"""Failed runs keep at most this much of the error message."""

MAX_TEXT_FILE_BYTES = 250_000
"""Files larger than this are never treated as text."""

CHUNK_MIN_WINDOW = 200
"""Smallest chunk window the chunker will use."""

EMBEDDING_MAX_INPUT_CHARS = 512
"""Longest text handed to the embedding provider."""

# =============================================================================
# Source host
# =============================================================================

GITHUB_API_VERSION = "2022-11-28"

COMPARE_MAX_FILES = 300
"""Compare payloads at or above this many files are re-read as raw diffs."""

NIGHTLY_COMPARE_CONCURRENCY = 4
"""Concurrent compare calls during change detection."""

# =============================================================================
# Administrative endpoint
# =============================================================================

ADMIN_REINDEX_PATH = "/internal/workshop-index/reindex"
