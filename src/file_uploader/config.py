import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Events older than this are dropped before admission. Not configurable.
STALENESS_WINDOW_SECONDS = 24 * 60 * 60


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration loaded from environment variables."""

    # --- Required Variables ---
    slack_bot_token: str
    storage_bucket: str
    public_base_url: str
    service_name: str
    environment: str

    # --- Optional Variables with Defaults ---
    max_file_size_mb: int
    concurrent_uploads: int
    log_level: str
    slack_api_base_url: str
    slack_signing_secret: str | None
    storage_kms_key_id: str | None

    # --- Derived Properties ---
    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1_048_576

    @property
    def staleness_window_seconds(self) -> int:
        return STALENESS_WINDOW_SECONDS

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Loads configuration from environment variables, performing validation and type casting.
        Fails fast with a ConfigurationError if anything is invalid.
        """
        try:
            # --- Handle required string variables ---
            slack_bot_token = os.environ["SLACK_BOT_TOKEN"]
            storage_bucket = os.environ["STORAGE_BUCKET_NAME"]
            public_base_url = os.environ["PUBLIC_BASE_URL"].rstrip("/")
            service_name = os.environ["SERVICE_NAME"]
            environment = os.environ["ENVIRONMENT"]

            if not slack_bot_token.strip():
                raise ValueError("SLACK_BOT_TOKEN must not be empty.")

            # --- Handle optional and numeric variables with validation ---
            max_file_size_mb = int(os.getenv("MAX_FILE_SIZE_MB", "2048"))
            if max_file_size_mb <= 0:
                raise ValueError("MAX_FILE_SIZE_MB must be a positive integer.")

            concurrent_uploads = int(os.getenv("CONCURRENT_UPLOADS", "3"))
            if concurrent_uploads <= 0:
                raise ValueError("CONCURRENT_UPLOADS must be a positive integer.")

            # --- Handle special-case variables like log level ---
            log_level = os.getenv("LOG_LEVEL", "INFO").upper()
            allowed_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if log_level not in allowed_log_levels:
                raise ValueError(
                    f"LOG_LEVEL must be one of {allowed_log_levels}, not '{log_level}'"
                )

            slack_api_base_url = os.getenv(
                "SLACK_API_BASE_URL", "https://slack.com/api"
            ).rstrip("/")
            slack_signing_secret = os.getenv("SLACK_SIGNING_SECRET") or None
            storage_kms_key_id = os.getenv("STORAGE_KMS_KEY_ID") or None

        except KeyError as e:
            raise ConfigurationError(
                f"Missing required environment variable: {e.args[0]}"
            ) from e
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for an environment variable: {e}"
            ) from e

        return cls(
            slack_bot_token=slack_bot_token,
            storage_bucket=storage_bucket,
            public_base_url=public_base_url,
            service_name=service_name,
            environment=environment,
            max_file_size_mb=max_file_size_mb,
            concurrent_uploads=concurrent_uploads,
            log_level=log_level,
            slack_api_base_url=slack_api_base_url,
            slack_signing_secret=slack_signing_secret,
            storage_kms_key_id=storage_kms_key_id,
        )


# --- Singleton Factory Function (Lazy-loaded and Cached) ---
@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """
    Loads the application configuration from environment variables.
    The result is cached using lru_cache, so the environment is only read once
    on the first call. This avoids import-time side effects.
    """
    logger.info("Loading application configuration from environment...")
    return AppConfig.load_from_env()
