"""
Authentication module for FloodGuard.
Provides the local admin gate in front of administrative deletes.

⚠️ LOCAL GATE ONLY
The gate controls this process, not the remote mirror.
"""

from .admin_gate import (
    AdminGate,
    hash_password,
)

__all__ = [
    "AdminGate",
    "hash_password",
]
