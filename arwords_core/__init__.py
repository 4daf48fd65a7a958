# =============================================================================
# arwords_core/__init__.py
# ArWords offline dictionary core
# =============================================================================
"""
Offline/online reconciliation and access gating for the ArWords dictionary.

Subpackages:
    offline   - local store, connectivity, entitlement cache, sync, routing
    data      - remote gateway over Supabase
    billing   - purchase-to-access bridge and receipt verification
    auth      - identity provider and account lifecycle
    services  - UI-facing facade returning ServiceResult
"""

__version__ = "1.0.0"
