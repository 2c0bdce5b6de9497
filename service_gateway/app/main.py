"""
Edge gateway service for the Access layer.

Every request, whatever its method or path, goes through the same sequence:
configuration check, token extraction, token verification, service lookup,
backend dispatch. The first failing step ends the request with a plain-text
error response.
"""

from typing import Dict, Optional

from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import GatewayConfig, VerificationConfig, get_config
from shared.errors import AuthenticationError, ConfigurationError

from .adapters.backend_client import BackendClient
from .auth import JWKSKeyProvider, SigningKeyProvider, TokenVerifier
from .routing import ServiceRouter
from .subscription import SubscriptionTranscoder

TOKEN_HEADER = "cf-access-jwt-assertion"
SERVICE_PARAM = "service"
GATEWAY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class GatewayService(BaseService):
    """Authenticating edge gateway."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        key_provider: Optional[SigningKeyProvider] = None,
        backend_client: Optional[BackendClient] = None,
    ):
        super().__init__("gateway", config or get_config())
        self.verification_config = self.config.verification()

        if key_provider is None and self.verification_config is not None:
            key_provider = JWKSKeyProvider(
                self.verification_config.jwks_url,
                refresh_interval=self.config.jwks_refresh_interval,
                refresh_cooldown=self.config.jwks_refresh_cooldown,
                http_timeout=self.config.http_timeout,
                metrics=self.metrics,
            )
        self.key_provider = key_provider
        self.token_verifier = (
            TokenVerifier(key_provider, leeway=self.config.jwt_leeway, metrics=self.metrics)
            if key_provider is not None
            else None
        )

        self.backend_client = backend_client or BackendClient(
            http_timeout=self.config.http_timeout,
            metrics=self.metrics,
        )
        self.transcoder = SubscriptionTranscoder(metrics=self.metrics)
        self.router = ServiceRouter(self.config.backends(), self.backend_client, self.transcoder)

        if self.verification_config is None:
            self.logger.warning(
                "Token policy not configured; all requests will be rejected",
                audience_set=bool(self.config.policy_aud),
                team_domain_set=bool(self.config.team_domain),
            )

        @self.app.on_event("startup")
        async def _startup():
            if isinstance(self.key_provider, JWKSKeyProvider):
                await self.key_provider.warmup()

        @self.app.on_event("shutdown")
        async def _shutdown():
            if isinstance(self.key_provider, JWKSKeyProvider):
                await self.key_provider.close()
            await self.backend_client.close()

        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_gateway_routes(self):
        """Register the catch-all gateway route after any ops routes."""

        @self.app.api_route("/{path:path}", methods=GATEWAY_METHODS, include_in_schema=False)
        async def gateway_entry(request: Request, path: str) -> Response:
            return await self.handle(request)

    async def handle(self, request: Request) -> Response:
        """Run one request through the gateway pipeline."""
        verification = self._check_config()
        token = self._extract_token(request)
        await self.token_verifier.verify(token, verification)
        return await self.router.dispatch(request.query_params.get(SERVICE_PARAM))

    def _check_config(self) -> VerificationConfig:
        if not self.config.policy_aud:
            raise ConfigurationError("Missing required audience")
        if self.verification_config is None or self.token_verifier is None:
            raise ConfigurationError("Missing required team domain")
        return self.verification_config

    def _extract_token(self, request: Request) -> str:
        token = request.headers.get(TOKEN_HEADER)
        if not token or not token.strip():
            raise AuthenticationError("Missing required CF Access JWT")
        return token.strip()

    async def _check_dependencies(self) -> Dict[str, str]:
        if isinstance(self.key_provider, JWKSKeyProvider):
            return {"jwks": await self.key_provider.check_health()}
        return {}


def create_app(config: Optional[GatewayConfig] = None):
    """Create FastAPI application."""
    service = GatewayService(config)
    return service.app


def main() -> None:
    GatewayService().run()


if __name__ == "__main__":
    main()
