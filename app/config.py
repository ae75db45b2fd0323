from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()  # picks up DATABASE_URL and friends from .env if present

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings:
    def __init__(self):
        self.app_name = "Fitness Studio CRM"
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./studio.db")
        self.secret_key = os.getenv("SECRET_KEY", "dev-secret")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.studio_timezone = os.getenv("STUDIO_TIMEZONE", "UTC")

        # The query cache is per process: run one multi-threaded process, or lower
        # CACHE_STALE_SECONDS when several workers serve the same database.
        self.cache_stale_seconds = int(os.getenv("CACHE_STALE_SECONDS", "300"))
        self.cache_gc_seconds = int(os.getenv("CACHE_GC_SECONDS", "600"))

        self.query_retries = int(os.getenv("QUERY_RETRIES", "3"))
        self.mutation_retries = int(os.getenv("MUTATION_RETRIES", "1"))
        self.retry_base_delay = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
        self.retry_max_delay = 30.0

        policy = os.getenv("CONFLICT_POLICY", "block").strip().lower()
        if policy not in ("block", "warn"):
            raise RuntimeError(
                f"CONFLICT_POLICY must be 'block' or 'warn', got {policy!r}"
            )
        self.conflict_policy = policy


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once; later calls only adjust the level."""
    level = (level or get_settings().log_level).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
