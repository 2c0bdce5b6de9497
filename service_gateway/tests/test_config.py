"""
Tests for gateway configuration loading.
"""

import pytest

from shared.config import GatewayConfig, get_config

GATEWAY_ENV = [
    "ACCESS_POLICY_AUD", "POLICY_AUD",
    "ACCESS_TEAM_DOMAIN", "TEAM_DOMAIN",
    "ACCESS_A_SERVICE_URL", "A_SERVICE",
    "ACCESS_J_SERVICE_URL", "J_SERVICE",
    "ACCESS_OPS_ENDPOINTS", "ACCESS_JWT_LEEWAY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in GATEWAY_ENV:
        monkeypatch.delenv(name, raising=False)


def load() -> GatewayConfig:
    return GatewayConfig(_env_file=None)


def test_prefixed_environment_variables(monkeypatch):
    monkeypatch.setenv("ACCESS_POLICY_AUD", "aud-1")
    monkeypatch.setenv("ACCESS_TEAM_DOMAIN", "https://team.example.com/")
    monkeypatch.setenv("ACCESS_A_SERVICE_URL", "https://a.internal")
    monkeypatch.setenv("ACCESS_OPS_ENDPOINTS", "true")
    monkeypatch.setenv("ACCESS_JWT_LEEWAY", "30")

    config = load()

    assert config.policy_aud == "aud-1"
    assert config.team_domain == "https://team.example.com"
    assert config.a_service_url == "https://a.internal"
    assert config.j_service_url is None
    assert config.ops_endpoints is True
    assert config.jwt_leeway == 30


def test_unprefixed_names_are_accepted(monkeypatch):
    monkeypatch.setenv("POLICY_AUD", "aud-2")
    monkeypatch.setenv("TEAM_DOMAIN", "https://team.example.com")
    monkeypatch.setenv("A_SERVICE", "https://a.internal")
    monkeypatch.setenv("J_SERVICE", "https://j.internal")

    config = load()

    assert config.policy_aud == "aud-2"
    assert config.backends().j_service_url == "https://j.internal"


def test_verification_policy():
    config = GatewayConfig(_env_file=None, policy_aud="aud", team_domain="https://team.example.com//")

    policy = config.verification()

    assert policy.audience == "aud"
    assert policy.issuer == "https://team.example.com"
    assert policy.jwks_url == "https://team.example.com/cdn-cgi/access/certs"


@pytest.mark.parametrize("overrides", [
    {},
    {"policy_aud": "   ", "team_domain": "https://team.example.com"},
    {"policy_aud": "aud"},
])
def test_incomplete_policy_is_none(overrides):
    assert GatewayConfig(_env_file=None, **overrides).verification() is None


def test_defaults():
    config = get_config(_env_file=None)

    assert config.log_level == "info"
    assert config.http_timeout == 10.0
    assert config.jwks_refresh_interval == 300
    assert config.jwks_refresh_cooldown == 30
    assert config.ops_endpoints is False
