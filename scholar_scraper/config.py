"""Configuration constants for the Scholar scraper"""

from pathlib import Path

# Target host
BASE_URL = "https://scholar.google.com"
DEFAULT_OUTPUT_DIR = Path("./output")
DEFAULT_LOG_FILE = Path("./logs/scholar_scraper.log")

# Logging (loguru sinks)
LOG_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <level>{message}</level>"
)
LOG_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"
LOG_ROTATION = "20 MB"
LOG_RETENTION = 5  # Rotated files kept
LOG_COMPRESSION = "gz"

# Timeouts (seconds)
DEFAULT_TIMEOUT = 5.0
SCRAPERAPI_TIMEOUT = 60.0  # ScraperAPI recommends 60s
TIMEOUT_CEILING_FACTOR = 3  # Escalate up to 3x the base timeout

# Retry configuration
DEFAULT_RETRIES = 5
JITTER_RANGE = (1.0, 2.0)  # Pre-request delay, seconds

# 403 cooldown: uniform draw in COOLDOWN_RANGE, widened per consecutive block
COOLDOWN_RANGE = (60.0, 120.0)
COOLDOWN_GROWTH = 0.5
COOLDOWN_MAX_SCALE = 4.0

# Pagination
MAX_PAGES = 1000  # Page follows per iterator
AUTHOR_PAGESIZE = 100

# Abuse markers (matched as raw substrings of the body)
DOS_MARKER_CLASSES = ("rc-doscaptcha-body",)
CAPTCHA_MARKER_IDS = ("gs_captcha_ccl", "recaptcha", "captcha-form")

# Proxy liveness checks
PROXY_CHECK_URL = "http://httpbin.org/ip"
SCRAPERAPI_ACCOUNT_URL = "http://api.scraperapi.com/account"
SCRAPERAPI_HOST = "proxy-server.scraperapi.com"
SCRAPERAPI_PORT = 8001
LUMINATI_HOST = "zproxy.lum-superproxy.io"

# curl_cffi browser fingerprints, one is drawn per session rotation
IMPERSONATE_TARGETS = (
    "chrome116",
    "chrome120",
    "chrome124",
    "chrome131",
    "edge101",
    "safari17_0",
    "firefox133",
    "firefox135",
)
ACCEPT_LANGUAGES = (
    "en-US,en",
    "en-US,en;q=0.9",
    "en-GB,en;q=0.8",
)
