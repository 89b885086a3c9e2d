"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bulkpay.config import BulkPaySettings, DispatchSettings, RetrySettings, get_settings
from bulkpay.retry import IntervalBackoff


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    settings = get_settings()
    
    assert settings.environment == "development"
    assert not settings.is_production
    assert settings.retry.max_attempts == 3
    assert settings.downstream.base_url == "http://localhost:8081"
    assert settings.dispatch.concurrency == 1
    assert settings.auth.enabled
    assert not settings.auth.token_endpoint_enabled
    assert settings.logging.level == "INFO"
    assert settings.server.port == 8080


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BULKPAY_ENVIRONMENT", "PRODUCTION")
    monkeypatch.setenv("BULKPAY_RETRY_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("BULKPAY_DOWNSTREAM_BASE_URL", "https://processor:9443")
    monkeypatch.setenv("BULKPAY_DISPATCH_CONCURRENCY", "8")
    monkeypatch.setenv("BULKPAY_LOG_LEVEL", "debug")
    monkeypatch.setenv("BULKPAY_AUTH_SECRET", "s3cret")
    
    settings = get_settings()
    assert settings.is_production
    assert settings.retry.max_attempts == 5
    assert settings.downstream.base_url == "https://processor:9443"
    assert settings.dispatch.concurrency == 8
    assert settings.logging.level == "DEBUG"
    assert settings.auth.secret.get_secret_value() == "s3cret"


def test_invalid_values_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BULKPAY_RETRY_MAX_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        RetrySettings()


def test_retry_settings_to_policy() -> None:
    policy = RetrySettings(max_attempts=4, wait_duration=0.1, multiplier=2.0, max_wait=0.3).to_policy()
    assert policy.max_attempts == 4
    assert isinstance(policy.backoff, IntervalBackoff)
    assert [policy.get_delay(i) for i in range(3)] == [0.1, 0.2, 0.3]
    assert policy.retryable_codes is None


def test_retry_settings_reject_shrinking_multiplier() -> None:
    with pytest.raises(ValidationError):
        RetrySettings(multiplier=0.5)


def test_downstream_settings_to_channel_config(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = BulkPaySettings().downstream.to_channel_config()
    assert config.url == "http://localhost:8081/api/v1/transactions"
    assert config.timeout == 10.0


def test_dispatch_settings_to_config() -> None:
    config = DispatchSettings(concurrency=4, duplicate_wait_timeout=2.5).to_config()
    assert config.concurrency == 4
    assert config.duplicate_wait_timeout == 2.5
