"""
Configuration settings for the Teed.club ops toolkit.

This module centralizes all configuration values and provides a single source of truth for all
configurable parameters used by the migration, diagnostic, seeding and collection scripts.
"""

import os
from typing import Optional

from dotenv import load_dotenv

# .env.local wins over .env, matching the web app's convention
_PROJECT_ROOT = os.path.join(os.path.dirname(__file__), "..")
load_dotenv(os.path.join(_PROJECT_ROOT, ".env.local"))
load_dotenv(os.path.join(_PROJECT_ROOT, ".env"))


class Config:
    """
    Central configuration class for the Teed.club ops toolkit.

    This class consolidates all configuration values including Supabase
    credentials, storage buckets, beta program limits, image processing
    parameters, and logging settings.
    """

    # Site
    SITE_BASE_URL: str = "https://teed.club"

    # Supabase Configuration
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_KEY: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    # Direct Postgres connection string (Settings -> Database in the dashboard)
    SUPABASE_DB_URL: Optional[str] = None

    # Storage buckets
    EQUIPMENT_IMAGES_BUCKET: str = "equipment-images"

    # Request Settings
    REQUEST_TIMEOUT: int = 30
    DEFAULT_DELAY_SECONDS: float = 0.5
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    )

    # Beta program
    DEFAULT_BETA_CAP: int = 150
    DEFAULT_INVITE_QUOTA: int = 3
    LOW_CAPACITY_THRESHOLD: int = 10
    INVITE_CODE_LENGTH: int = 8

    # Image processing
    MIN_IMAGE_SIZE: int = 400
    TARGET_IMAGE_SIZE: int = 1000
    IMAGE_SEARCH_RESULTS: int = 5
    IMAGE_SEARCH_URL: str = "https://duckduckgo.com/html/"

    # Batch sizes
    RANKING_BATCH_SIZE: int = 100
    IMPORT_BATCH_SIZE: int = 50

    # File Paths
    SQL_MIGRATIONS_DIR: str = os.path.join(_PROJECT_ROOT, "sql", "migrations")
    SCRAPED_DATA_DIR: str = "scraped-data"
    LOG_DIR: str = "logs"
    ORCHESTRATOR_LOG_FILE: str = "logs/orchestrator.log"

    # Orchestrator
    ORCHESTRATOR_STEP_TIMEOUT: int = 600

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024  # 5MB
    LOG_BACKUP_COUNT: int = 3

    def __init__(self):
        """Initialize configuration by loading from environment variables."""
        self._load_from_env()

    def _load_from_env(self):
        """Load configuration values from environment variables."""
        # Supabase settings; the VITE_ names are what the frontend .env uses
        supabase_url = os.getenv("SUPABASE_URL") or os.getenv("VITE_SUPABASE_URL")
        if supabase_url:
            self.SUPABASE_URL = supabase_url.rstrip("/")

        service_key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv(
            "SUPABASE_SERVICE_ROLE_KEY"
        )
        if service_key:
            self.SUPABASE_SERVICE_KEY = service_key

        anon_key = os.getenv("SUPABASE_ANON_KEY") or os.getenv(
            "VITE_SUPABASE_ANON_KEY"
        )
        if anon_key:
            self.SUPABASE_ANON_KEY = anon_key

        db_url = os.getenv("SUPABASE_DB_URL")
        if db_url:
            self.SUPABASE_DB_URL = db_url

        # Optional overrides
        site_base_url = os.getenv("SITE_BASE_URL")
        if site_base_url:
            self.SITE_BASE_URL = site_base_url.rstrip("/")

        request_timeout = os.getenv("REQUEST_TIMEOUT")
        if request_timeout:
            self.REQUEST_TIMEOUT = int(request_timeout)

        default_delay = os.getenv("DEFAULT_DELAY_SECONDS")
        if default_delay:
            self.DEFAULT_DELAY_SECONDS = float(default_delay)

        log_level = os.getenv("LOG_LEVEL")
        if log_level:
            self.LOG_LEVEL = log_level

    def validate_for_supabase_operations(self):
        """
        Validate configuration required for service-role Supabase access.

        Raises:
            ValueError: If the project URL or service key is missing.
        """
        if not self.SUPABASE_URL:
            raise ValueError(
                "SUPABASE_URL (or VITE_SUPABASE_URL) environment variable is required. "
                "Please set it in your .env.local file or environment."
            )

        if not self.SUPABASE_SERVICE_KEY:
            raise ValueError(
                "SUPABASE_SERVICE_KEY (or SUPABASE_SERVICE_ROLE_KEY) environment variable is required. "
                "Please set it in your .env.local file or environment."
            )

    def validate_for_anon_operations(self):
        """
        Validate configuration required for anonymous-role Supabase access.

        Raises:
            ValueError: If the project URL or anon key is missing.
        """
        if not self.SUPABASE_URL:
            raise ValueError(
                "SUPABASE_URL (or VITE_SUPABASE_URL) environment variable is required. "
                "Please set it in your .env.local file or environment."
            )

        if not self.SUPABASE_ANON_KEY:
            raise ValueError(
                "SUPABASE_ANON_KEY (or VITE_SUPABASE_ANON_KEY) environment variable is required. "
                "Please set it in your .env.local file or environment."
            )

    def validate_for_database_operations(self):
        """
        Validate configuration required for direct Postgres access.

        Raises:
            ValueError: If SUPABASE_DB_URL is missing.
        """
        if not self.SUPABASE_DB_URL:
            raise ValueError(
                "SUPABASE_DB_URL environment variable is required for direct SQL execution. "
                "Copy the connection string from Supabase Dashboard > Settings > Database."
            )

    def has_direct_database(self) -> bool:
        """Return True when a direct Postgres connection string is configured."""
        return bool(self.SUPABASE_DB_URL)

    def get_database_url(self) -> str:
        """
        Return the SQLAlchemy connection URL for the project's Postgres instance.

        Supabase hands out ``postgres://`` / ``postgresql://`` URLs; these are
        rewritten to use the psycopg2 driver explicitly.

        Returns:
            str: PostgreSQL connection URL
        """
        self.validate_for_database_operations()
        url = self.SUPABASE_DB_URL
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                return "postgresql+psycopg2://" + url[len(prefix):]
        return url


# Global configuration instance
config = Config()
