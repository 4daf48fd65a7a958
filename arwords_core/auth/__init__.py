# =============================================================================
# arwords_core/auth/__init__.py
# Identity and Account Lifecycle
# =============================================================================

from .identity import AuthSession, IdentityProvider, SupabaseIdentity

__all__ = ["AuthSession", "IdentityProvider", "SupabaseIdentity"]
