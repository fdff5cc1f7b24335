"""Tests for run settings."""

import pytest
from pydantic import ValidationError

from fetchrun.config import RunSettings


class TestRunSettings:
    def test_defaults(self):
        """Defaults match the hard limits of a typical small run."""
        config = RunSettings()
        assert config.min_concurrency == 10
        assert config.max_concurrency == 50
        assert config.max_retries == 1
        assert config.request_timeout == 30.0
        assert config.max_requests_per_run == 10
        assert config.items_path == "data.items"

    def test_env_prefix(self, monkeypatch):
        """Settings can be overridden from FETCHRUN_* variables."""
        monkeypatch.setenv("FETCHRUN_MAX_RETRIES", "4")
        monkeypatch.setenv("FETCHRUN_REQUEST_TIMEOUT", "2.5")
        config = RunSettings()
        assert config.max_retries == 4
        assert config.request_timeout == 2.5

    @pytest.mark.parametrize("overrides", [
        {"min_concurrency": 0},
        {"min_concurrency": 5, "max_concurrency": 4},
        {"max_retries": -1},
        {"request_timeout": 0},
        {"max_requests_per_run": -1},
    ])
    def test_invalid_limits_rejected(self, overrides):
        with pytest.raises(ValidationError):
            RunSettings(**overrides)

    def test_zero_cap_allowed(self):
        """0 means no per-run cap."""
        assert RunSettings(max_requests_per_run=0).max_requests_per_run == 0
