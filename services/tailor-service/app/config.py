import os

DATABASE_URL = os.getenv("TAILOR_DB")

DB_STATEMENT_TIMEOUT_SECONDS = float(os.getenv("DB_STATEMENT_TIMEOUT_SECONDS") or "5")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE") or "10")
DB_POOL_TIMEOUT_SECONDS = float(os.getenv("DB_POOL_TIMEOUT_SECONDS") or "10")

REDIS_URL = os.getenv("REDIS_URL")  # optional, enables the search cache
SEARCH_CACHE_TTL_SECONDS = int(os.getenv("SEARCH_CACHE_TTL_SECONDS") or "120")

MAX_SEARCH_RADIUS_KM = float(os.getenv("MAX_SEARCH_RADIUS_KM") or "100")
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE") or "12")
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE") or "100")

LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
