"""Tests for configuration loading."""

from pathlib import Path

import pytest

from statement_intake.config import (
    Config,
    ConfigValidationError,
    ExtractionConfig,
    create_default_config,
    load_config,
)

ENV_VARS = (
    "EXTRACTION_URL",
    "EXTRACTION_TOKEN",
    "EXTRACTION_TIMEOUT",
    "INTAKE_STATE_DB",
    "INTAKE_BLOB_ROOT",
    "INTAKE_ROSTER",
    "INTAKE_TRY_COMPANY_PASSWORDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """YAML loading with environment overrides."""

    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")

        assert config.extraction.base_url == "http://localhost:8500"
        assert config.extraction.timeout_seconds == 120
        assert config.extraction.cache_ttl_seconds == 300
        assert config.passwords.max_manual_attempts == 3
        assert config.passwords.try_company_passwords is False
        assert config.state_db_path == Path("data/state.db")
        assert config.roster_path == Path("roster.yaml")
        assert config.validate() == []

    def test_values_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            """
extraction:
  base_url: "http://extract.internal:9000"
  token: "abc"
  max_retries: 5
  cache_ttl_seconds: 0
storage:
  blob_root: "/srv/blobs"
passwords:
  max_manual_attempts: 2
  try_company_passwords: true
roster_path: "companies.yaml"
state_db_path: "/srv/state.db"
"""
        )

        config = load_config(path)

        assert config.extraction.base_url == "http://extract.internal:9000"
        assert config.extraction.token == "abc"
        assert config.extraction.max_retries == 5
        assert config.extraction.cache_ttl_seconds == 0
        assert config.storage.blob_root == Path("/srv/blobs")
        assert config.passwords.max_manual_attempts == 2
        assert config.passwords.try_company_passwords is True
        assert config.roster_path == Path("companies.yaml")
        assert config.state_db_path == Path("/srv/state.db")

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("passwords:\n  try_company_passwords: true\n")
        monkeypatch.setenv("EXTRACTION_URL", "http://env:1")
        monkeypatch.setenv("EXTRACTION_TIMEOUT", "30")
        monkeypatch.setenv("INTAKE_STATE_DB", str(tmp_path / "env.db"))
        monkeypatch.setenv("INTAKE_TRY_COMPANY_PASSWORDS", "false")

        config = load_config(path)

        assert config.extraction.base_url == "http://env:1"
        assert config.extraction.timeout_seconds == 30
        assert config.state_db_path == tmp_path / "env.db"
        assert config.passwords.try_company_passwords is False

    def test_default_config_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        create_default_config(path)

        config = load_config(path)

        assert path.exists()
        assert config.extraction.token == "YOUR_EXTRACTION_TOKEN"
        assert config.validate() == []


class TestValidation:
    """Config.validate / ensure_valid."""

    def test_invalid_values_reported(self):
        config = Config(extraction=ExtractionConfig(base_url="", timeout_seconds=0))
        config.passwords.max_manual_attempts = 0

        errors = config.validate()

        assert "extraction.base_url is required" in errors
        assert "extraction.timeout_seconds must be positive" in errors
        assert "passwords.max_manual_attempts must be >= 1" in errors

    def test_ensure_valid_raises(self):
        config = Config(extraction=ExtractionConfig(base_url=""))
        with pytest.raises(ConfigValidationError, match="base_url"):
            config.ensure_valid()
