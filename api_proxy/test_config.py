import importlib

import pytest

from api_proxy import vars as env
from api_proxy.config import ProxyConfig, load_config, log_startup_summary
from api_proxy.errors import ConfigMissing
from api_proxy.routing import RouteTable


def test_missing_domain_fails_fast():
    with pytest.raises(ConfigMissing):
        ProxyConfig(domain="")


def test_auth_disabled_without_password():
    config = ProxyConfig(domain="proxy.example.com")
    assert config.auth_enabled is False


def test_auth_enabled_with_password():
    config = ProxyConfig(domain="proxy.example.com", password="secret123")
    assert config.auth_enabled is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"token_scheme": "plain"},
        {"header_policy": "everything"},
        {"security_header_mode": "both"},
        {"cookie_samesite": "lax"},
        {"session_max_age": 10},
        {"session_max_age": 60 * 24 * 60 * 60},
        {"login_path": "login"},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        ProxyConfig(domain="proxy.example.com", **kwargs)


def test_config_is_immutable():
    config = ProxyConfig(domain="proxy.example.com")
    with pytest.raises(Exception):
        config.domain = "other.example.com"


def test_load_config_from_environment(monkeypatch):
    monkeypatch.setenv("PROXY_DOMAIN", "proxy.example.com")
    monkeypatch.setenv("PROXY_PASSWORD", "secret123")
    monkeypatch.setenv("AUTH_TOKEN_SCHEME", "digest")
    monkeypatch.setenv("COOKIE_SAMESITE", "lax")
    monkeypatch.setenv("AUTH_EXEMPT_API_ROUTES", "true")
    import api_proxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        config = load_config()
    finally:
        monkeypatch.undo()
        importlib.reload(vars_module)

    assert config.domain == "proxy.example.com"
    assert config.password == "secret123"
    assert config.token_scheme == "digest"
    assert config.cookie_samesite == "Lax"
    assert config.exempt_api_routes is True
    assert len(config.routes) == 4


def test_load_config_without_domain(monkeypatch):
    monkeypatch.delenv("PROXY_DOMAIN", raising=False)
    import api_proxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        with pytest.raises(ConfigMissing):
            load_config()
    finally:
        monkeypatch.undo()
        importlib.reload(vars_module)


def test_startup_summary_warns_when_auth_disabled(caplog):
    config = ProxyConfig(
        domain="proxy.example.com",
        routes=RouteTable({"/openai": "https://api.openai.com"}),
    )
    with caplog.at_level("INFO", logger="uvicorn.error"):
        log_startup_summary(config)

    assert "https://proxy.example.com/openai -> https://api.openai.com" in caplog.text
    assert f"Listening on {env.PROXY_HOST}:{env.PROXY_PORT}" in caplog.text
    warnings = [r for r in caplog.records if r.levelname == "WARNING"]
    assert any("Authentication is disabled" in r.getMessage() for r in warnings)
