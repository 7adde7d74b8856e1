"""Configuration for the catalog price monitor."""

import os

CATALOG_BASE_URL = "https://fimex.ae"
LOGIN_PATH = "/app-api/v1/auth/login"
BRANDS_PATH = "/app-api/v1/brands"
PRICELIST_PATH = "/app-api/v1/pricelist"

CATALOG_LOGIN = os.environ.get("CATALOG_LOGIN", "")
CATALOG_PASSWORD = os.environ.get("CATALOG_PASSWORD", "")
CATALOG_APP_ACCESS = os.environ.get("CATALOG_APP_ACCESS", "")
SERVICE_NAME = "catalog"

REQUEST_TIMEOUT = 10  # seconds
LOGIN_TIMEOUT = 15  # seconds
TOKEN_TTL_HOURS = 24  # used when the issuer declares no expiry
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

POLL_INTERVAL_MINUTES = 3
BRAND_DELAY = 0.2  # seconds between pricelist fetches
INITIAL_LOAD_DELAY = 1.0  # seconds between fetches on first load
DB_PATH = os.environ.get("DB_PATH", "monitor.db")

# Telegram
TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "")
MESSAGE_DELAY = 0.5  # seconds between consecutive sends
MAX_MESSAGE_LENGTH = 3800  # below the 4096 API limit to leave room for markup
CURRENCY = "RUB"

# Category A for subscriber filtering; everything else is "other"
APPLE_KEYWORDS = (
    "iphone",
    "ipad",
    "macbook",
    "mac ",
    "apple watch",
    "airpods",
    "apple",
    "imac",
    "mac mini",
    "mac pro",
    "mac studio",
)
