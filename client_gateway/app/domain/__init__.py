"""
Domain utilities for the client gateway.

Includes the error normalizer that turns every transport or HTTP failure
into one GatewayError of a known kind.
"""

from .error_normalizer import ErrorNormalizer

__all__ = [
    "ErrorNormalizer",
]
