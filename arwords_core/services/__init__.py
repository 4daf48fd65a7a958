# =============================================================================
# arwords_core/services/__init__.py
# Service Layer
# =============================================================================

from .base_service import BaseService, ServiceResult
from .dictionary_service import (
    DictionaryService,
    assemble_dictionary_service,
    build_dictionary_service,
    build_purchase_bridge,
)

__all__ = [
    "BaseService",
    "ServiceResult",
    "DictionaryService",
    "assemble_dictionary_service",
    "build_dictionary_service",
    "build_purchase_bridge",
]
