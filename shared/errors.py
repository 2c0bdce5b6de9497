"""
Shared error handling for the Access edge gateway.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi.responses import PlainTextResponse


class AccessLayerException(Exception):
    """Base exception for gateway errors that terminate a request."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> PlainTextResponse:
        """Convert to a plain-text error response."""
        return PlainTextResponse(
            self.message,
            status_code=self.status_code,
            headers={"X-Error-Code": self.code},
        )


class ConfigurationError(AccessLayerException):
    """Required gateway configuration is missing."""

    status_code = 403

    def __init__(self, message: str = "Missing required configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    status_code = 403

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class RoutingFailure(str, Enum):
    MISSING_SERVICE = "MISSING_SERVICE"
    UNKNOWN_SERVICE = "UNKNOWN_SERVICE"


class RoutingError(AccessLayerException):
    """The requested service could not be resolved."""

    _STATUS = {
        RoutingFailure.MISSING_SERVICE: 400,
        RoutingFailure.UNKNOWN_SERVICE: 403,
    }

    def __init__(self, kind: RoutingFailure, message: str, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        super().__init__(kind.value, message, details, status_code=self._STATUS[kind])


class BackendError(AccessLayerException):
    """Upstream fetch failed; surfaces the upstream status when there is one."""

    def __init__(
        self,
        service: str,
        message: str = "unavailable",
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.service = service
        self.upstream_status = upstream_status
        status_code = upstream_status if upstream_status and upstream_status >= 400 else 502
        super().__init__(
            "BACKEND_UNAVAILABLE",
            f"Backend {service} {message}",
            details,
            status_code=status_code,
        )
