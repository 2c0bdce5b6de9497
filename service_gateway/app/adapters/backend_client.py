"""
Backend HTTP client for the Access edge gateway.
"""

from typing import Optional

import httpx

from shared.errors import BackendError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


class BackendClient:
    """Plain GET against a configured backend URL.

    Transport failures and non-2xx answers are raised as BackendError; there
    are no retries.
    """

    def __init__(
        self,
        *,
        http_timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.logger = get_logger("gateway.backend_client")
        self.metrics = metrics
        self._client = client or httpx.AsyncClient(timeout=http_timeout, follow_redirects=True)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, service: str, url: str) -> httpx.Response:
        """Fetch ``url`` on behalf of ``service``."""
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            # Backend URLs may embed credentials; log the service id only.
            self.logger.error("Backend request failed", service=service, error=type(exc).__name__)
            self._record(service, "error")
            raise BackendError(service, f"unavailable: {type(exc).__name__}") from exc

        if not response.is_success:
            self.logger.error("Backend returned error status", service=service, status_code=response.status_code)
            self._record(service, str(response.status_code))
            raise BackendError(
                service,
                f"returned status {response.status_code}",
                upstream_status=response.status_code,
            )

        self._record(service, str(response.status_code))
        return response

    def _record(self, service: str, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_backend_request(service, status)
