"""
Service routing for the Access edge gateway.
"""

from enum import Enum
from typing import Dict, Optional

import httpx
from fastapi import Response
from fastapi.responses import PlainTextResponse

from shared.config import BackendConfig
from shared.errors import BackendError, RoutingError, RoutingFailure
from shared.logging import get_logger, set_target_service
from shared.tracing import add_span_attributes

from ..adapters.backend_client import BackendClient
from ..subscription.transcoder import SubscriptionTranscoder

# Recomputed by the server for the response we send.
EXCLUDED_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


class ServiceKind(str, Enum):
    PLAIN = "plain"
    SUBSCRIPTION = "subscription"


class ServiceTarget(str, Enum):
    """Closed set of services reachable through the gateway."""

    A = "A"
    J = "J"

    @property
    def kind(self) -> ServiceKind:
        return _KINDS[self]

    @classmethod
    def resolve(cls, service_id: Optional[str]) -> "ServiceTarget":
        if not service_id:
            raise RoutingError(RoutingFailure.MISSING_SERVICE, "Missing required service parameter")
        try:
            return cls(service_id)
        except ValueError:
            raise RoutingError(
                RoutingFailure.UNKNOWN_SERVICE,
                f"Unknown service: {service_id}",
                details={"service": service_id},
            ) from None


_KINDS: Dict[ServiceTarget, ServiceKind] = {
    ServiceTarget.A: ServiceKind.PLAIN,
    ServiceTarget.J: ServiceKind.SUBSCRIPTION,
}


class ServiceRouter:
    """Dispatches a service id to its backend and shapes the response."""

    def __init__(
        self,
        backends: BackendConfig,
        backend_client: BackendClient,
        transcoder: SubscriptionTranscoder,
    ):
        self.backends = backends
        self.backend_client = backend_client
        self.transcoder = transcoder
        self.logger = get_logger("gateway.router")
        self._urls: Dict[ServiceTarget, Optional[str]] = {
            ServiceTarget.A: backends.a_service_url,
            ServiceTarget.J: backends.j_service_url,
        }

    async def dispatch(self, service_id: Optional[str]) -> Response:
        """Route to the backend for ``service_id``.

        Raises:
            RoutingError: missing or unknown service id.
            BackendError: backend not configured, unreachable, or non-2xx.
        """
        target = ServiceTarget.resolve(service_id)
        set_target_service(target.value)
        add_span_attributes(**{"gateway.service": target.value, "gateway.service_kind": target.kind.value})

        url = self._urls[target]
        if not url:
            raise BackendError(target.value, "not configured")

        upstream = await self.backend_client.fetch(target.value, url)
        if target.kind is ServiceKind.SUBSCRIPTION:
            return self._transcoded(upstream)
        return self._passthrough(upstream)

    def _passthrough(self, upstream: httpx.Response) -> Response:
        response = Response(content=upstream.content, status_code=upstream.status_code)
        # multi_items keeps repeated headers such as Set-Cookie
        for key, value in upstream.headers.multi_items():
            if key.lower() not in EXCLUDED_HEADERS:
                response.headers.append(key, value)
        return response

    def _transcoded(self, upstream: httpx.Response) -> Response:
        lines = self.transcoder.transcode(upstream.text)
        add_span_attributes(**{"gateway.subscription.entries": len(lines)})
        self.logger.info("Subscription transcoded", entries=len(lines))
        return PlainTextResponse("\n".join(lines), status_code=200)
