"""
Project-wide constants for schemaless translation
"""  # noqa: D200, D212, D415

# ==============================================================================
# Template Generation
# ==============================================================================

DEFAULT_MODEL = "gemini-2.0-flash"

GENERATION_ATTEMPTS = 5
GENERATION_RETRY_DELAY = 3.0  # seconds

# Shapes larger than this are not sent to the generator
MAX_INPUT_SIZE = 5000  # bytes

# ==============================================================================
# Single-flight coordination
# ==============================================================================

LOCK_SUFFIX = "-started"
LOCK_TTL = 60  # seconds; bounds staleness when a generating process dies
POLL_INTERVAL = 5.0  # seconds
POLL_ATTEMPTS = 6
SINGLEFLIGHT_JITTER = 0.5  # seconds; upper bound of the random start delay

# ==============================================================================
# Cache
# ==============================================================================

TEMPLATE_TTL = 24 * 3600  # 1 day in seconds
MAX_CACHE_ITEM_SIZE = 1_020_000  # bytes, just under the memcached 1MB item limit
MAX_CACHE_CHUNKS = 50

# ==============================================================================
# Sub-standard fan-out
# ==============================================================================

MAX_CONCURRENCY = 10
MAX_SUBSTANDARD_ITEMS = 50

# ==============================================================================
# Storage namespaces
# ==============================================================================

QUERIES_NAMESPACE = "queries"
TEMPLATES_NAMESPACE = "translation_output"
INPUT_NAMESPACE = "input"
STANDARDS_DIRECTORY = "standards"
