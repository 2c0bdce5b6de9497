"""
Service-name routing for the Access edge gateway.
"""

from .router import ServiceKind, ServiceRouter, ServiceTarget

__all__ = [
    "ServiceKind",
    "ServiceRouter",
    "ServiceTarget",
]
