"""
Token verification for the Access edge gateway.
"""

from .jwks import JWKSKeyProvider, SigningKeyProvider, TokenVerifier

__all__ = [
    "JWKSKeyProvider",
    "SigningKeyProvider",
    "TokenVerifier",
]
