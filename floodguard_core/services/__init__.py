# =============================================================================
# floodguard_core/services/__init__.py
# Service Layer for FloodGuard
# Separates engine calls from UI presentation
# =============================================================================
"""
Service Layer for FloodGuard

Wraps the SyncOrchestrator so a UI gets ServiceResult values instead of
exceptions.

Usage Example:
-------------
    from floodguard_core.config import load_settings
    from floodguard_core.models import SOSDraft
    from floodguard_core.services import RescueService

    service = RescueService.from_settings(load_settings())
    result = service.create_sos(SOSDraft(name="Aisyah", phone="012-0000000"))
    if result.success:
        print(f"SOS id: {result.data.id}")
    else:
        print(result.error)
"""

from .base_service import BaseService, ServiceResult
from .rescue_service import RescueService

__all__ = [
    "BaseService",
    "ServiceResult",
    "RescueService",
]
