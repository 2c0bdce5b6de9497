"""
JSON Web Key Set (JWKS) token verification for the Access edge gateway.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from shared.config import VerificationConfig
from shared.errors import AuthenticationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


class SigningKeyProvider(Protocol):
    """Source of public signing keys, looked up by key id."""

    async def get_signing_key(self, kid: str) -> Dict[str, Any]:
        """Return the JWK for ``kid`` or raise AuthenticationError."""
        ...


class JWKSKeyProvider:
    """Fetches and caches the signing key set published by the token issuer."""

    def __init__(
        self,
        jwks_url: str,
        *,
        refresh_interval: int = 300,
        refresh_cooldown: int = 30,
        http_timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.jwks_url = jwks_url
        self.refresh_interval = refresh_interval
        self.refresh_cooldown = refresh_cooldown
        self.metrics = metrics
        self.logger = get_logger("gateway.auth.jwks")

        self._keys: Optional[List[Dict[str, Any]]] = None
        self._last_refresh: float = 0.0
        self._last_fetch: float = 0.0
        self._generation = 0
        self._lock = asyncio.Lock()
        self._client = client or httpx.AsyncClient(timeout=http_timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def warmup(self) -> None:
        """Eagerly load the key set so the first request does not pay the cost."""
        try:
            await self._refresh_keys(force=True)
        except AuthenticationError as exc:
            self.logger.warning("JWKS warmup failed", error=exc.message)

    async def check_health(self) -> str:
        """Return 'ok' if the key set can be loaded, otherwise 'error'."""
        try:
            await self._refresh_keys(force=False)
            return "ok"
        except AuthenticationError as exc:
            self.logger.error("JWKS health check failed", error=exc.message)
            return "error"

    async def get_signing_key(self, kid: str) -> Dict[str, Any]:
        """Return the key matching ``kid``, refreshing once on a miss.

        The miss refresh is skipped while the last fetch is younger than
        ``refresh_cooldown`` seconds, so unknown key ids cannot drive one
        remote fetch per request.
        """
        await self._refresh_keys(force=False)
        key = self._find(kid)
        if key is not None:
            return key

        # Key might be rotated; refresh once more eagerly.
        if not self._in_cooldown():
            await self._refresh_keys(force=True)
            key = self._find(kid)
        if key is None:
            raise AuthenticationError(f"no signing key matches kid '{kid}'", details={"kid": kid})
        return key

    def _find(self, kid: str) -> Optional[Dict[str, Any]]:
        for key in self._keys or []:
            if key.get("kid") == kid:
                return key
        return None

    def _is_fresh(self) -> bool:
        return self._keys is not None and (time.time() - self._last_refresh) < self.refresh_interval

    def _in_cooldown(self) -> bool:
        return (time.time() - self._last_fetch) < self.refresh_cooldown

    async def _refresh_keys(self, *, force: bool) -> None:
        """Refresh the key set if the cache is stale."""
        if not force and self._is_fresh():
            return

        # Only the first waiter refetches; the rest see the fresh set.
        generation = self._generation
        async with self._lock:
            if self._generation != generation or (not force and self._is_fresh()):
                return

            self._last_fetch = time.time()
            try:
                response = await self._client.get(self.jwks_url)
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                self._record_refresh("error")
                self.logger.error("JWKS fetch failed", url=self.jwks_url, error=str(exc))
                raise AuthenticationError(
                    f"signing key set unavailable: {exc}",
                    details={"jwks_url": self.jwks_url},
                ) from exc

            keys = payload.get("keys") if isinstance(payload, dict) else None
            if not isinstance(keys, list):
                self._record_refresh("error")
                raise AuthenticationError("signing key set response missing 'keys' array")

            self._keys = [key for key in keys if isinstance(key, dict)]
            self._last_refresh = time.time()
            self._generation += 1
            self._record_refresh("ok")
            self.logger.info("JWKS refreshed", keys_count=len(self._keys))

    def _record_refresh(self, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_jwks_refresh(status)


class TokenVerifier:
    """Validates signed tokens against a key provider and a fixed policy."""

    def __init__(
        self,
        key_provider: SigningKeyProvider,
        *,
        leeway: int = 0,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.key_provider = key_provider
        self.leeway = leeway
        self.metrics = metrics
        self.logger = get_logger("gateway.auth.verifier")

    async def verify(self, token: str, config: VerificationConfig) -> Mapping[str, Any]:
        """Verify ``token`` and return its claims.

        Checks the signature with the key named by the token's ``kid``,
        then issuer, audience and the time-validity claims.

        Raises:
            AuthenticationError: for every verification failure, with the
                cause in the message.
        """
        try:
            claims = await self._verify(token, config)
        except AuthenticationError:
            self._record("rejected")
            raise
        self._record("ok")
        return claims

    async def _verify(self, token: str, config: VerificationConfig) -> Mapping[str, Any]:
        if not token:
            raise self._rejected("empty token")

        try:
            header = jwt.get_unverified_header(token)
        except JOSEError as exc:
            raise self._rejected(str(exc)) from exc

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise self._rejected("token header missing key id (kid)")

        try:
            key_data = await self.key_provider.get_signing_key(kid)
        except AuthenticationError as exc:
            raise self._rejected(exc.message, **exc.details) from exc

        algorithms = [key_data.get("alg", "RS256")]
        options = {
            "require_aud": True,
            "require_iss": True,
            "require_exp": True,
            "leeway": self.leeway,
        }

        try:
            claims = jwt.decode(
                token,
                key_data,
                algorithms=algorithms,
                audience=config.audience,
                issuer=config.issuer,
                options=options,
            )
        except JOSEError as exc:
            raise self._rejected(str(exc), kid=kid) from exc

        self.logger.debug("Token verified", sub=claims.get("sub"), kid=kid)
        return claims

    def _rejected(self, cause: str, **details: Any) -> AuthenticationError:
        self.logger.info("Token rejected", cause=cause)
        return AuthenticationError(f"Invalid token: {cause}", details={"cause": cause, **details})

    def _record(self, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_token_validation(status)
