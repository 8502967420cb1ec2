"""
Authentication package for the client gateway.

Holds the persisted credential store and the single-flight refresh
coordinator that recovers from expired access tokens.
"""

from .credentials import CredentialStore
from .refresh import AuthRefreshCoordinator, AuthState, LoginRedirector

__all__ = [
    "CredentialStore",
    "AuthRefreshCoordinator",
    "AuthState",
    "LoginRedirector",
]
