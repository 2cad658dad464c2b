"""
Configuration and shared collaborators for the GinkoHub Tools API
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

from ginkohub.store import create_store

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Application configuration"""

    # API settings
    TITLE = "GinkoHub Tools API"
    DESCRIPTION = "Small web utilities: GitHub scraping, fetch proxy, images, text tools and comments"
    VERSION = "1.0.0"
    DOCS_URL = "/docs"
    OPENAPI_URL = "/docs-json"
    API_PREFIXES = ("/api", "/api/v1")

    # CORS settings
    ALLOW_ORIGINS = ["*"]
    ALLOW_CREDENTIALS = True
    ALLOW_METHODS = ["*"]
    ALLOW_HEADERS = ["*"]

    # Server settings
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = _env_int("PORT", 3000)
    RELOAD = os.getenv("APP_ENV", "production") == "development"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Storage
    APP_ENV = os.getenv("APP_ENV", "production")
    STORE_URL = os.getenv("UPSTASH_REDIS_REST_URL") or os.getenv("KV_REST_API_URL")
    STORE_TOKEN = os.getenv("UPSTASH_REDIS_REST_TOKEN") or os.getenv("KV_REST_API_TOKEN")

    # Outbound HTTP
    GITHUB_PROXY_TIMEOUT = 10
    FETCH_TIMEOUT = 15
    SCRAPER_TIMEOUT = 10
    MAX_REDIRECTS = 5
    FETCH_RETRIES = 3
    FETCH_BACKOFF = 1.0
    SCRAPER_USER_AGENT = "Mozilla/5.0"
    DEFAULT_USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    # Cache TTLs (seconds)
    REPO_TTL = 7200
    TRENDING_TTL = 3600
    USER_TTL = 14400

    # Comments
    COMMENT_MIN_LENGTH = 2
    COMMENT_MAX_LENGTH = 500
    COMMENT_LIMIT = 50
    COMMENT_RATE_LIMIT = 60
    VOTE_LOCK_TTL = 86400

    # Hit counter
    HIT_LOCK_TTL = 86400


@lru_cache(maxsize=1)
def get_store():
    """Get the process-wide key-value store.

    The backend is chosen once from the environment; handlers receive it
    through ``Depends(get_store)`` so tests can override it.
    """
    return create_store(
        url=Config.STORE_URL,
        token=Config.STORE_TOKEN,
        environment=Config.APP_ENV,
    )
