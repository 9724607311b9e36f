# =============================================================================
# floodguard_core/config/__init__.py
# Configuration for FloodGuard
# =============================================================================

from .settings import (
    RemoteConfig,
    FloodGuardSettings,
    load_settings,
    load_secrets_toml,
)

__all__ = [
    "RemoteConfig",
    "FloodGuardSettings",
    "load_settings",
    "load_secrets_toml",
]
