"""
Shared configuration management for the Access edge gateway.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Path of the signing key set relative to the team domain.
CERTS_PATH = "/cdn-cgi/access/certs"


@dataclass(frozen=True)
class VerificationConfig:
    """Audience and issuer every accepted token must carry."""

    audience: str
    issuer: str

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}{CERTS_PATH}"


@dataclass(frozen=True)
class BackendConfig:
    """Backend URL per known service identifier."""

    a_service_url: Optional[str] = None
    j_service_url: Optional[str] = None


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="ACCESS_ENV")
    log_level: str = Field(default="info", validation_alias="ACCESS_LOG_LEVEL")

    # Outbound HTTP
    http_timeout: float = Field(default=10.0, validation_alias="ACCESS_HTTP_TIMEOUT")

    # Observability
    enable_tracing: bool = Field(default=False, validation_alias="ACCESS_ENABLE_TRACING")
    otel_exporter: str = Field(default="http://localhost:4317", validation_alias="ACCESS_OTEL_EXPORTER")
    enable_console_tracing: bool = Field(default=False, validation_alias="ACCESS_ENABLE_CONSOLE_TRACING")
    ops_endpoints: bool = Field(default=False, validation_alias="ACCESS_OPS_ENDPOINTS")

    # Server
    host: str = Field(default="0.0.0.0", validation_alias="ACCESS_HOST")
    port: int = Field(default=8000, validation_alias="ACCESS_PORT")


class GatewayConfig(BaseConfig):
    """Gateway configuration: token policy and backend routing table."""

    # Security
    policy_aud: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ACCESS_POLICY_AUD", "POLICY_AUD"),
    )
    team_domain: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ACCESS_TEAM_DOMAIN", "TEAM_DOMAIN"),
    )
    jwks_refresh_interval: int = Field(default=300, validation_alias="ACCESS_JWKS_REFRESH_INTERVAL")
    jwks_refresh_cooldown: int = Field(default=30, validation_alias="ACCESS_JWKS_REFRESH_COOLDOWN")
    jwt_leeway: int = Field(default=0, validation_alias="ACCESS_JWT_LEEWAY")

    # Backends
    a_service_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ACCESS_A_SERVICE_URL", "A_SERVICE"),
    )
    j_service_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ACCESS_J_SERVICE_URL", "J_SERVICE"),
    )

    @field_validator("team_domain")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip().rstrip("/") or None

    @field_validator("policy_aud", "a_service_url", "j_service_url")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    def verification(self) -> Optional[VerificationConfig]:
        """Return the token policy, or None when audience or issuer is not configured."""
        if not self.policy_aud or not self.team_domain:
            return None
        return VerificationConfig(audience=self.policy_aud, issuer=self.team_domain)

    def backends(self) -> BackendConfig:
        return BackendConfig(a_service_url=self.a_service_url, j_service_url=self.j_service_url)


def get_config(**overrides) -> GatewayConfig:
    """Get gateway configuration from the environment, with optional overrides."""
    return GatewayConfig(**overrides)
