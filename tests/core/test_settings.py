"""Tests for gateflow.core.settings."""

import pytest
from pydantic import ValidationError

from gateflow.core.settings import GateflowSettings, get_settings


class TestGateflowSettings:
    def test_defaults(self):
        settings = GateflowSettings(_env_file=None)
        assert settings.workflow == "weather"
        assert settings.store_backend == "memory"
        assert settings.port == 8080
        assert settings.upstream_url is None

    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("GATEFLOW_WORKFLOW", "ip")
        monkeypatch.setenv("GATEFLOW_TIMEOUT_SECONDS", "12.5")
        monkeypatch.setenv("GATEFLOW_STORE_BACKEND", "sql")
        settings = GateflowSettings(_env_file=None)
        assert settings.workflow == "ip"
        assert settings.timeout_seconds == 12.5
        assert settings.store_backend == "sql"

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValidationError):
            GateflowSettings(_env_file=None, store_backend="redis")

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            GateflowSettings(_env_file=None, timeout_seconds=0)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
