"""
Adapters package for the Gateway Service.

Contains the HTTP client used to reach the routed backends. Adapters map
transport failures to shared errors and stay free of routing decisions.
"""

from .backend_client import BackendClient

__all__ = [
    "BackendClient",
]
