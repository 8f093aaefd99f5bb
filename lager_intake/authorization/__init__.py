"""
Authorization

PIN-gated admin sessions.
"""

from .admin_gate import (
    AdminGate,
    AdminSession,
    AuthenticationError,
    AuthorizationError,
    require_admin,
)

__all__ = [
    'AdminGate',
    'AdminSession',
    'AuthenticationError',
    'AuthorizationError',
    'require_admin',
]
