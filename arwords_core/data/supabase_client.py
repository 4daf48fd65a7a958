# =============================================================================
# arwords_core/data/supabase_client.py
# Supabase Client Configuration for the ArWords offline core
# =============================================================================

from __future__ import annotations
from typing import Optional

from supabase import AsyncClient, acreate_client

from arwords_core.config import Settings
from arwords_core.logging import get_logger

logger = get_logger(__name__)

_supabase_client: Optional[AsyncClient] = None


async def create_supabase_client(settings: Settings) -> AsyncClient:
    """
    Create an async Supabase client from settings.

    Expects secrets in config/secrets.toml or the environment:
        [supabase]
        url = "https://your-project.supabase.co"
        key = "your-anon-key"

    Raises:
        ConfigurationError: When URL or key is missing
    """
    url, key = settings.require_supabase()
    client = await acreate_client(url, key)
    logger.info("Supabase client initialized")
    return client


async def get_cached_supabase_client(settings: Settings) -> AsyncClient:
    """Get the process-wide client, creating it on first use."""
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = await create_supabase_client(settings)
    return _supabase_client


def reset_supabase_client() -> None:
    """Drop the cached client (after sign-out or in tests)."""
    global _supabase_client
    _supabase_client = None
