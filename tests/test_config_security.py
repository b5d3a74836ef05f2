import pytest

from studenthub.config import load_config, safe_int_env


def _clear_env(monkeypatch):
    for name in ("FLASK_ENV", "SENTRY_ENVIRONMENT", "ENV", "FLASK_SECRET_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_load_config_requires_secret_key_in_non_dev(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("RENDER", "true")

    with pytest.raises(RuntimeError):
        load_config()


def test_load_config_allows_missing_secret_in_dev(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.delenv("RENDER", raising=False)
    monkeypatch.setenv("FLASK_ENV", "development")

    cfg = load_config()
    assert cfg.flask_secret_key == ""


def test_rate_limits_can_be_overridden_per_endpoint(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("FLASK_ENV", "development")
    monkeypatch.setenv("CHAT_RATE_LIMIT_MAX_REQUESTS", "3")
    monkeypatch.setenv("CHAT_RATE_LIMIT_WINDOW_MS", "5000")

    cfg = load_config()

    assert cfg.rate_limit_for("chat") == (3, 5000)
    assert cfg.rate_limit_for("quiz") == (5, 60000)


def test_invalid_integer_env_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("SOME_LIMIT", "lots")

    assert safe_int_env("SOME_LIMIT", 20, minimum=1, maximum=100) == 20


def test_cors_origins_are_parsed_from_env(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("FLASK_ENV", "development")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://StudentHub.app, http://localhost:3000")

    cfg = load_config()

    assert cfg.cors_allowed_origins == frozenset({"https://studenthub.app", "http://localhost:3000"})
