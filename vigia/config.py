"""Configuration for the audit engine.

Every setting can be overridden with a `VIGIA_*` environment variable;
defaults match the public OSV.dev, deps.dev and npm registry endpoints.
"""

import os

from pydantic import BaseModel, Field


def _env(name: str, default: str) -> str:
    return os.getenv(f"VIGIA_{name}", default)


class Config(BaseModel):
    """Endpoints, HTTP limits and batching knobs used by one audit run."""

    # Endpoints
    osv_batch_url: str = Field(
        default_factory=lambda: _env("OSV_BATCH_URL", "https://api.osv.dev/v1/querybatch")
    )
    osv_vuln_url: str = Field(
        default_factory=lambda: _env("OSV_VULN_URL", "https://api.osv.dev/v1/vulns/")
    )
    deps_dev_url: str = Field(
        default_factory=lambda: _env("DEPS_DEV_URL", "https://api.deps.dev/v3/systems")
    )
    npm_registry_url: str = Field(
        default_factory=lambda: _env("NPM_REGISTRY_URL", "https://registry.npmjs.org")
    )

    # HTTP
    http_timeout: float = Field(default_factory=lambda: float(_env("HTTP_TIMEOUT", "45")))
    max_connections: int = Field(default=100)
    max_keepalive_connections: int = Field(default=20)

    # Batching (items per batch, batches per wave)
    batch_size: int = Field(default_factory=lambda: int(_env("BATCH_SIZE", "100")), ge=1)
    concurrency: int = Field(default_factory=lambda: int(_env("CONCURRENCY", "8")), ge=1)
    vuln_batch_size: int = Field(default_factory=lambda: int(_env("VULN_BATCH_SIZE", "25")), ge=1)
    vuln_concurrency: int = Field(default_factory=lambda: int(_env("VULN_CONCURRENCY", "10")), ge=1)
    transitive_batch_size: int = Field(
        default_factory=lambda: int(_env("TRANSITIVE_BATCH_SIZE", "15")), ge=1
    )
    transitive_concurrency: int = Field(
        default_factory=lambda: int(_env("TRANSITIVE_CONCURRENCY", "6")), ge=1
    )

    # Logging
    log_file: str = Field(default_factory=lambda: _env("LOG_FILE", "debug.log"))
    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "DEBUG"))


def load_config(**overrides) -> Config:
    """Factory used by the entry point and the auditor."""
    return Config(**overrides)
