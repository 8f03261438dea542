"""
Configuration management (SSOT).

This module defines ALL configuration for the statement intake pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The extraction service is reached only through ExtractionConfig.base_url
- Stored bank passwords never appear in config; they come from the roster
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class ExtractionConfig:
    """Extraction service configuration.

    The service receives the statement file plus the target month/year and an
    optional password, and answers with structured fields or a
    "password required" signal.
    """

    base_url: str
    token: str = ""
    # Request timeout (seconds); extraction of long statements is slow
    timeout_seconds: int = 120
    # Transport-level retries for transient failures
    max_retries: int = 3
    backoff_factor: float = 0.5
    # Successful extraction results are reused for this long
    cache_ttl_seconds: int = 300


@dataclass
class StorageConfig:
    """Document blob storage settings."""

    blob_root: Path = field(default_factory=lambda: Path("data/blobs"))


@dataclass
class PasswordConfig:
    """Password resolution settings."""

    # Manual entry rounds before unresolved files are failed
    max_manual_attempts: int = 3
    # Also try every stored password of the matched company
    try_company_passwords: bool = False


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    extraction: ExtractionConfig
    storage: StorageConfig = field(default_factory=StorageConfig)
    passwords: PasswordConfig = field(default_factory=PasswordConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))
    roster_path: Path = field(default_factory=lambda: Path("roster.yaml"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.extraction.base_url:
            errors.append("extraction.base_url is required")
        if self.extraction.timeout_seconds <= 0:
            errors.append("extraction.timeout_seconds must be positive")
        if self.extraction.max_retries < 0:
            errors.append("extraction.max_retries must be >= 0")
        if self.extraction.cache_ttl_seconds < 0:
            errors.append("extraction.cache_ttl_seconds must be >= 0")

        if self.passwords.max_manual_attempts < 1:
            errors.append("passwords.max_manual_attempts must be >= 1")

        return errors

    def ensure_valid(self) -> None:
        """Raise ConfigValidationError if validate() reports problems."""
        errors = self.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - EXTRACTION_URL
    - EXTRACTION_TOKEN
    - EXTRACTION_TIMEOUT (request timeout in seconds)
    - INTAKE_STATE_DB
    - INTAKE_BLOB_ROOT
    - INTAKE_ROSTER
    - INTAKE_TRY_COMPANY_PASSWORDS (true/false)
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Extraction service
    extraction_data = data.get("extraction", {})
    extraction = ExtractionConfig(
        base_url=os.environ.get(
            "EXTRACTION_URL", extraction_data.get("base_url", "http://localhost:8500")
        ),
        token=os.environ.get("EXTRACTION_TOKEN", extraction_data.get("token", "")),
        timeout_seconds=int(os.environ.get(
            "EXTRACTION_TIMEOUT", extraction_data.get("timeout_seconds", 120)
        )),
        max_retries=extraction_data.get("max_retries", 3),
        backoff_factor=extraction_data.get("backoff_factor", 0.5),
        cache_ttl_seconds=extraction_data.get("cache_ttl_seconds", 300),
    )

    # Blob storage
    storage_data = data.get("storage", {})
    storage = StorageConfig(
        blob_root=Path(
            os.environ.get("INTAKE_BLOB_ROOT", storage_data.get("blob_root", "data/blobs"))
        ),
    )

    # Passwords
    password_data = data.get("passwords", {})
    try_company = password_data.get("try_company_passwords", False)
    try_company_env = os.environ.get("INTAKE_TRY_COMPANY_PASSWORDS", "").lower()
    if try_company_env == "true":
        try_company = True
    elif try_company_env == "false":
        try_company = False

    passwords = PasswordConfig(
        max_manual_attempts=password_data.get("max_manual_attempts", 3),
        try_company_passwords=try_company,
    )

    state_db = os.environ.get("INTAKE_STATE_DB", data.get("state_db_path", "data/state.db"))
    roster = os.environ.get("INTAKE_ROSTER", data.get("roster_path", "roster.yaml"))

    return Config(
        extraction=extraction,
        storage=storage,
        passwords=passwords,
        state_db_path=Path(state_db),
        roster_path=Path(roster),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Bank Statement Intake Configuration

extraction:
  base_url: "http://localhost:8500"       # Extraction service URL
  token: "YOUR_EXTRACTION_TOKEN"
  timeout_seconds: 120
  max_retries: 3                          # Transport retries (429/5xx)
  backoff_factor: 0.5
  cache_ttl_seconds: 300                  # Reuse successful extractions

storage:
  blob_root: "data/blobs"                 # Statement files land here (write-once)

passwords:
  max_manual_attempts: 3                  # Prompt rounds before a file is failed
  try_company_passwords: false            # Also try other accounts of the company

# Bank/company roster (read-only)
roster_path: "roster.yaml"

# State database path
state_db_path: "data/state.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
