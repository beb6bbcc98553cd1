"""
Shared constants used across all meter modules.

Centralises magic numbers, default endpoints, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}

# ---------------------------------------------------------------------------
# Default endpoints
# ---------------------------------------------------------------------------

TEST_FILE_URL = "https://cachefly.cachefly.net/10mb.test"
UPLOAD_TEST_URL = "https://httpbin.org/post"

DEFAULT_SCHEME = "https://"
CACHE_BUST_PARAM = "t"

DEFAULT_TARGET = "one.one.one.one"

PRESET_TARGETS = {
    "Cloudflare DNS": "1.1.1.1",
    "Google DNS": "8.8.8.8",
    "Google.com": "google.com",
    "Facebook.com": "facebook.com",
}

# ---------------------------------------------------------------------------
# Latency sampling
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 5
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100
PING_DELAY = 0.1                 # seconds between sequential samples
PING_TIMEOUT = 5.0               # per-sample request timeout
PENALTY_LATENCY_MS = 999.0       # recorded for a failed sample

# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------

CHUNK_SIZE = 64 * 1024
TRANSFER_TIMEOUT = 15.0          # absolute bound for one transfer
PROGRESS_FLOOR = 0.2             # no rate estimate before 200 ms
UPLOAD_PAYLOAD_SIZE = 10 * 1024 * 1024
MIN_UPLOAD_SIZE = 1024
MAX_UPLOAD_SIZE = 512 * 1024 * 1024

# ---------------------------------------------------------------------------
# Continuous probing
# ---------------------------------------------------------------------------

PROBE_TIMEOUT_MS = 2000
PROBE_INTERVAL_MS = 1000
MIN_PROBE_INTERVAL_MS = 100
MAX_PROBE_INTERVAL_MS = 60_000

# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

RECENT_WINDOW = 100              # latencies kept for jitter
HISTORY_WINDOW = 60              # points kept for the live chart
LOG_WINDOW = 200                 # session log lines kept

# Upper bounds (exclusive) of the distribution buckets, in ms.
EXCELLENT_BELOW_MS = 30.0
GOOD_BELOW_MS = 100.0
FAIR_BELOW_MS = 250.0
