import os
import logging
from dotenv import dotenv_values
from pydantic_settings import BaseSettings
from pydantic import model_validator
from typing import Literal, Optional


logger = logging.getLogger(__name__)


def _env_or_dotenv(key: str, dotenv_path: str = ".env") -> Optional[str]:
    """Get a value from env var (if non-empty) or from .env file.

    Pydantic-settings prefers env vars over .env files. If the env var
    is set to an empty string, pydantic treats it as the actual value and
    ignores the .env file. This helper ensures that empty env vars fall
    through to the .env file value.
    """
    val = os.environ.get(key)
    if val:  # non-empty env var wins
        return val
    vals = dotenv_values(dotenv_path)
    return vals.get(key) or None


# Zone discovery endpoint; answers with the tenant-specific REST base URL
ZONE_INFORMATION_URL = "https://webservices.autotask.net/atservicesrest/v1.0/zoneInformation"


class Settings(BaseSettings):
    # Autotask API credentials
    autotask_username: Optional[str] = None
    autotask_secret: Optional[str] = None
    autotask_integration_code: Optional[str] = None
    # Auto-detected from zone information when not set
    autotask_api_url: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: Literal["simple", "json"] = "simple"

    # HTTP
    request_timeout: float = 30.0
    max_retries: int = 3

    # Label cache (company / resource names)
    label_cache_ttl_seconds: int = 3600
    preload_page_size: int = 500
    preload_max_pages: int = 20

    # Tool searches
    default_page_size: int = 25

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _resolve_empty_env_vars(self) -> "Settings":
        """Fix empty env vars overriding .env file values."""
        optional_keys = [
            "autotask_username",
            "autotask_secret",
            "autotask_integration_code",
            "autotask_api_url",
        ]
        for key in optional_keys:
            if not getattr(self, key):
                val = _env_or_dotenv(key.upper())
                if val:
                    object.__setattr__(self, key, val)
        return self


def validate_settings(config: Settings) -> list[str]:
    """Return a list of human-readable problems (empty when usable)."""
    errors: list[str] = []
    if not config.autotask_username:
        errors.append("AUTOTASK_USERNAME is required")
    if not config.autotask_secret:
        errors.append("AUTOTASK_SECRET is required")
    if not config.autotask_integration_code:
        errors.append("AUTOTASK_INTEGRATION_CODE is required")
    if config.label_cache_ttl_seconds < 0:
        errors.append("LABEL_CACHE_TTL_SECONDS must be >= 0")
    if config.preload_page_size < 1 or config.preload_page_size > 500:
        errors.append("PRELOAD_PAGE_SIZE must be between 1 and 500")
    return errors


settings = Settings()
