"""
Domain — centralised constants and thresholds.
Keeps magic numbers / magic strings out of the individual modules.
Values marked as configurable are overridden from the environment by
config.settings.init_settings() at startup.
"""

# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
SERVICE_NAME = "bcra-rates-backend"
API_PREFIX = "/api/exchange"
CORS_ALLOW_ORIGINS = "http://localhost:5173"  # comma separated, configurable

# ---------------------------------------------------------------------------
# Cache Store (in-memory, process lifetime only)
# ---------------------------------------------------------------------------
RATES_CACHE_MAXSIZE = 1000
RATES_CACHE_TTL = 86400  # 24 hours (default when a set() gives no TTL)
HISTORICAL_CACHE_MAXSIZE = 500
HISTORICAL_CACHE_TTL = 604800  # 7 days
METADATA_CACHE_MAXSIZE = 100
METADATA_CACHE_TTL = 86400  # 24 hours

CACHE_PRUNE_INTERVAL_SECONDS = 6 * 60 * 60  # 6 hours

# Per-dataset TTLs used by the resolver and the warming jobs
CURRENT_RATES_TTL = 3600  # 1 hour
HISTORY_TTL = 604800  # 7 days
CURRENCIES_TTL = 86400  # 24 hours

CURRENCIES_KEY_PARAM = "all"

# ---------------------------------------------------------------------------
# Date Fallback
# ---------------------------------------------------------------------------
DATE_FALLBACK_MAX_DAYS = 7  # backward cache scan depth and upstream attempt budget

# ---------------------------------------------------------------------------
# Cache Warming
# ---------------------------------------------------------------------------
CACHE_WARMING_ENABLED = True  # configurable
CACHE_WARMING_INTERVAL_SECONDS = 30 * 60  # configurable
CACHE_WARMING_INITIAL_DELAY_SECONDS = 5  # configurable, lets the server finish startup

WARMING_CURRENCIES_NEXT_RUN = 24 * 60 * 60
WARMING_CURRENT_RATES_NEXT_RUN = 60 * 60
WARMING_HISTORICAL_NEXT_RUN = 24 * 60 * 60
WARMING_BULK_HISTORY_NEXT_RUN = 24 * 60 * 60

WARMING_HISTORY_CURRENCIES = ("USD", "EUR", "GBP", "JPY", "BRL", "CLP")
WARMING_HISTORY_LOOKBACK_DAYS = 8  # start = today - 8
WARMING_BULK_LOOKBACK_DAYS = 370  # one year plus slack for holidays
WARMING_RANGE_END_OFFSET_DAYS = 1  # ranges end yesterday (today is not published yet)

# ---------------------------------------------------------------------------
# BCRA Upstream API
# ---------------------------------------------------------------------------
BCRA_API_BASE_URL = "https://api.bcra.gob.ar/estadisticascambiarias/v1.0"  # configurable
BCRA_REQUEST_TIMEOUT = 15  # seconds
BCRA_VERIFY_TLS = False  # configurable; BCRA serves an incomplete certificate chain
BCRA_USER_AGENT = "Mozilla/5.0 (compatible; bcra-rates-backend/1.0)"
BCRA_HISTORY_PAGE_LIMIT = 1000  # max rows per page accepted by the API
BCRA_HISTORY_MAX_PAGES = 50
PRECIOUS_METAL_CODES = frozenset({"XAU", "XAG"})

# ---------------------------------------------------------------------------
# Retry Configuration (upstream transient network failures)
# ---------------------------------------------------------------------------
BCRA_RETRY_ATTEMPTS = 3
BCRA_RETRY_WAIT_MIN = 1  # seconds (exponential backoff minimum)
BCRA_RETRY_WAIT_MAX = 5  # seconds (exponential backoff maximum)

# ---------------------------------------------------------------------------
# curl_cffi
# ---------------------------------------------------------------------------
CURL_CFFI_IMPERSONATE = "chrome"

# ---------------------------------------------------------------------------
# Time Source
# ---------------------------------------------------------------------------
UPSTREAM_TIMEZONE = "America/Argentina/Buenos_Aires"
WORLD_TIME_API_URLS = (
    "https://worldtimeapi.org/api/timezone/America/Argentina/Buenos_Aires",
    "https://worldtimeapi.org/api/timezone/UTC",
    "https://worldtimeapi.org/api/ip",
)
WORLD_TIME_REQUEST_TIMEOUT = 3  # seconds
WORLD_TIME_CACHE_TTL = 300  # 5 minutes
WORLD_TIME_MAX_SKEW_SECONDS = 365 * 24 * 60 * 60  # reject answers > 1 year off
WORLD_TIME_MAX_FUTURE_SECONDS = 24 * 60 * 60  # reject answers > 1 day ahead

# ---------------------------------------------------------------------------
# Rate Limiting (slowapi)
# ---------------------------------------------------------------------------
RATE_LIMIT_DEFAULT = "100/15minutes"
RATE_LIMIT_CACHE_ADMIN = "10/minute"
RATE_LIMIT_WARMING_RUN = "10/minute"

# ---------------------------------------------------------------------------
# API Error Codes
# ---------------------------------------------------------------------------
ERROR_INVALID_DATE = "INVALID_DATE"
ERROR_INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
ERROR_FUTURE_DATE = "FUTURE_DATE_REQUESTED"
ERROR_NO_DATA_FOR_RANGE = "NO_DATA_FOR_RANGE"
ERROR_UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
ERROR_UNKNOWN_CACHE = "UNKNOWN_CACHE_NAME"
ERROR_UNKNOWN_JOB = "UNKNOWN_JOB_ID"
ERROR_JOB_FAILED = "JOB_EXECUTION_FAILED"
