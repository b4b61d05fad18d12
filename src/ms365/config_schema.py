"""Pydantic configuration schema for ms365.

This module defines the configuration schema that mirrors the optional
config.yaml structure. Environment variables are applied on top of the file
before validation (see ms365.config).

Usage:
    from ms365.config_schema import AppConfig

    config = AppConfig(**yaml_data)
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

CURRENT_SCHEMA_VERSION = 1

# Well-known tenant for personal Microsoft accounts
CONSUMERS_TENANT = "consumers"

# Tenant used when none is configured; Azure AD resolves it from the signed-in account
DEFAULT_TENANT = "common"

DEFAULT_TOKEN_CACHE_PATH = str(Path.home() / ".ms365" / "token_cache.json")


class AuthConfig(BaseModel):
    """Azure AD authentication configuration."""

    tenant: str = Field(
        default=DEFAULT_TENANT,
        description="Azure AD tenant name or ID; 'common' lets Azure AD pick",
    )
    app_id: str = Field(
        default="",
        description="Custom app registration ID; empty means use a built-in one",
    )
    use_cli_app_id: bool = Field(
        default=False,
        description="Use the CLI for Microsoft 365 app ID instead of this package's own",
    )
    scopes: list[str] = Field(
        default=[".default"],
        description="Microsoft Graph scopes for business (Teams/SharePoint/OneDrive) logins",
    )
    auth_type: Literal["interactive", "device_code"] = Field(
        default="interactive",
        description="Login flow when no cached credential is usable",
    )
    token_cache_path: str = Field(
        default=DEFAULT_TOKEN_CACHE_PATH,
        description="Path to the MSAL token cache file",
    )

    @field_validator("tenant")
    @classmethod
    def validate_tenant(cls, v: str) -> str:
        """Treat a blank tenant as the default rather than an error."""
        v = v.strip()
        return v or DEFAULT_TENANT

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one scope is required")
        return v

    @field_validator("token_cache_path")
    @classmethod
    def validate_token_cache_path(cls, v: str) -> str:
        """Ensure token cache path doesn't contain path traversal."""
        if not v or not v.strip():
            raise ValueError("Token cache path cannot be empty")
        if ".." in v:
            raise ValueError("Token cache path cannot contain '..' (path traversal)")
        return v


class GraphConfig(BaseModel):
    """Microsoft Graph HTTP client settings."""

    base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Microsoft Graph API base URL",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for 5xx, 429, timeouts and connection errors",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout in seconds",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Log level",
    )
    json_output: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )


class AppConfig(BaseModel):
    """Root configuration."""

    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION, ge=1)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
