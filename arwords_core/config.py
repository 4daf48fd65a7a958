# =============================================================================
# arwords_core/config.py
# Runtime Settings for the ArWords offline core
# Reads config/secrets.toml, .env and the process environment
# =============================================================================

"""
Settings loader.

Precedence, highest first:
    1. secrets.toml ([supabase] url/key, [billing] product_id/revenuecat_api_key)
    2. Environment variables (optionally populated from a .env file)
    3. Defaults below

Expected secrets.toml layout:
    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"

    [billing]
    product_id = "premium_access"
"""

from __future__ import annotations
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from arwords_core.errors import ConfigurationError
from arwords_core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SECRETS_PATH = Path("config") / "secrets.toml"
DEFAULT_DB_PATH = Path("local_data") / "arwords.db"
DEFAULT_PREFERENCES_PATH = Path("local_data") / "preferences.json"
DEFAULT_PRODUCT_ID = "premium_access"
DEFAULT_REVENUECAT_URL = "https://api.revenuecat.com/v1"


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings shared by every component."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    db_path: Path = DEFAULT_DB_PATH
    preferences_path: Path = DEFAULT_PREFERENCES_PATH
    product_id: str = DEFAULT_PRODUCT_ID
    sync_batch_size: int = 100
    store_query_timeout: float = 15.0
    billing_connect_timeout: float = 10.0
    revenuecat_api_key: Optional[str] = None
    revenuecat_api_url: str = DEFAULT_REVENUECAT_URL
    log_level: str = "INFO"
    log_to_file: bool = False

    def __post_init__(self):
        if self.sync_batch_size <= 0:
            raise ConfigurationError(
                "sync_batch_size must be positive",
                config_key="sync_batch_size",
            )
        for key in ("store_query_timeout", "billing_connect_timeout"):
            if getattr(self, key) <= 0:
                raise ConfigurationError(f"{key} must be positive", config_key=key)

    def require_supabase(self) -> tuple[str, str]:
        """Return (url, key) or raise when the backend is not configured."""
        if not self.supabase_url:
            raise ConfigurationError("Supabase URL is not configured", config_key="supabase.url")
        if not self.supabase_key:
            raise ConfigurationError("Supabase key is not configured", config_key="supabase.key")
        return self.supabase_url, self.supabase_key


def _read_secrets(secrets_path: Path) -> Dict[str, Any]:
    if not secrets_path.exists():
        return {}
    try:
        with open(secrets_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            f"Invalid secrets file: {e}",
            config_key=str(secrets_path),
        ) from e


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default: float, cast=float):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be numeric", config_key=name) from e


def load_settings(
    secrets_path: Optional[Path] = None,
    env_file: Optional[Path] = None,
) -> Settings:
    """
    Build Settings from secrets.toml and the environment.

    Args:
        secrets_path: Path to secrets.toml (default: config/secrets.toml)
        env_file: Optional .env file; load_dotenv() searches upwards when None
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    secrets = _read_secrets(Path(secrets_path) if secrets_path else DEFAULT_SECRETS_PATH)
    supabase = secrets.get("supabase", {})
    billing = secrets.get("billing", {})

    settings = Settings(
        supabase_url=supabase.get("url") or os.getenv("SUPABASE_URL"),
        supabase_key=supabase.get("key") or os.getenv("SUPABASE_KEY"),
        db_path=Path(os.getenv("ARWORDS_DB_PATH", str(DEFAULT_DB_PATH))),
        preferences_path=Path(
            os.getenv("ARWORDS_PREFERENCES_PATH", str(DEFAULT_PREFERENCES_PATH))
        ),
        product_id=billing.get("product_id") or os.getenv("ARWORDS_PRODUCT_ID", DEFAULT_PRODUCT_ID),
        sync_batch_size=_env_number("ARWORDS_SYNC_BATCH_SIZE", 100, int),
        store_query_timeout=_env_number("ARWORDS_STORE_QUERY_TIMEOUT", 15.0),
        billing_connect_timeout=_env_number("ARWORDS_BILLING_CONNECT_TIMEOUT", 10.0),
        revenuecat_api_key=billing.get("revenuecat_api_key") or os.getenv("REVENUECAT_API_KEY"),
        revenuecat_api_url=os.getenv("REVENUECAT_API_URL", DEFAULT_REVENUECAT_URL),
        log_level=os.getenv("ARWORDS_LOG_LEVEL", "INFO"),
        log_to_file=_env_bool("ARWORDS_LOG_TO_FILE", False),
    )

    if settings.supabase_url:
        logger.debug(f"Supabase configured: {settings.supabase_url}")
    else:
        logger.warning("Supabase credentials not found; remote features are disabled")

    return settings
