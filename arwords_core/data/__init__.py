# =============================================================================
# arwords_core/data/__init__.py
# Remote Data Access
# =============================================================================

from .gateway import RemoteGateway
from .supabase_gateway import SupabaseGateway

__all__ = ["RemoteGateway", "SupabaseGateway"]
