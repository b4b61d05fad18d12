"""Configuration loader.

Configuration comes from an optional YAML file, validated against the
Pydantic schema, with environment variables layered on top:

- CLIMICROSOFT365_TENANT: default tenant (shared with the CLI for Microsoft 365)
- CLIMICROSOFT365_AADAPPID: default app registration ID
- MS365_USE_CLI_APP_ID: "1"/"true" to use the CLI for Microsoft 365 app ID
- MS365_CONFIG_PATH: location of the YAML file

Usage:
    from ms365.config import get_config

    config = get_config()
    print(config.auth.tenant)
"""

import os
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from ms365.config_schema import CURRENT_SCHEMA_VERSION, AppConfig
from ms365.core.errors import ConfigLoadError, ConfigValidationError
from ms365.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".ms365" / "config.yaml"

ENV_TENANT = "CLIMICROSOFT365_TENANT"
ENV_APP_ID = "CLIMICROSOFT365_AADAPPID"
ENV_USE_CLI_APP_ID = "MS365_USE_CLI_APP_ID"
ENV_CONFIG_PATH = "MS365_CONFIG_PATH"

_TRUTHY = {"1", "true", "yes", "on"}

_config_lock = threading.Lock()
_current_config: AppConfig | None = None


def _get_config_path() -> tuple[Path, bool]:
    """Get the config file path and whether it was explicitly requested."""
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        return Path(env_path), True
    return DEFAULT_CONFIG_PATH, False


def _format_validation_errors(error: PydanticValidationError) -> str:
    """Format Pydantic validation errors into actionable messages."""
    messages = []
    for err in error.errors():
        field_path = ".".join(str(loc) for loc in err["loc"])
        if err["type"] == "missing":
            messages.append(f"  - Missing required field '{field_path}'")
        else:
            messages.append(f"  - Field '{field_path}': {err['msg']}")
    return "\n".join(messages)


def _load_yaml(path: Path, required: bool) -> dict[str, Any]:
    """Load and parse a YAML config file.

    Args:
        path: Path to YAML file
        required: If False, a missing file yields an empty mapping

    Returns:
        Parsed YAML as dictionary

    Raises:
        ConfigLoadError: If a required file is missing or the YAML doesn't parse
    """
    if not path.exists():
        if required:
            raise ConfigLoadError(
                f"Configuration file not found: {path}\n"
                f"Unset {ENV_CONFIG_PATH} or point it at an existing file."
            )
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML in {path}:\n{e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Configuration file must be a YAML mapping, got {type(data).__name__}"
        )
    return data


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Layer environment variables over the file values."""
    auth = dict(data.get("auth") or {})

    tenant = os.environ.get(ENV_TENANT)
    if tenant:
        auth["tenant"] = tenant

    app_id = os.environ.get(ENV_APP_ID)
    if app_id:
        auth["app_id"] = app_id

    use_cli = os.environ.get(ENV_USE_CLI_APP_ID)
    if use_cli is not None and use_cli.strip():
        auth["use_cli_app_id"] = use_cli.strip().lower() in _TRUTHY

    return {**data, "auth": auth}


def _validate_config(data: dict[str, Any], source: str) -> AppConfig:
    """Validate config data against the Pydantic schema.

    Raises:
        ConfigValidationError: If validation fails
    """
    try:
        config = AppConfig(**data)
    except PydanticValidationError as e:
        error_details = _format_validation_errors(e)
        raise ConfigValidationError(
            f"Configuration validation failed for {source}:\n{error_details}"
        ) from e

    if config.schema_version > CURRENT_SCHEMA_VERSION:
        raise ConfigValidationError(
            f"Config schema version {config.schema_version} is newer than "
            f"supported version {CURRENT_SCHEMA_VERSION}. "
            "Please upgrade ms365 or downgrade the config."
        )
    return config


def load_config(path: Path | None = None) -> AppConfig:
    """Load and validate configuration, always fresh from disk and environment.

    Args:
        path: Optional path to a config file. If not provided, uses
              MS365_CONFIG_PATH or ~/.ms365/config.yaml (which may be absent).

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigLoadError: If an explicitly requested file cannot be loaded
        ConfigValidationError: If validation fails
    """
    if path is not None:
        config_path, required = path, True
    else:
        config_path, required = _get_config_path()

    logger.debug("Loading configuration", path=str(config_path), required=required)

    data = _apply_env_overrides(_load_yaml(config_path, required))
    config = _validate_config(data, str(config_path))

    logger.debug(
        "Configuration loaded",
        path=str(config_path),
        tenant=config.auth.tenant,
        custom_app=bool(config.auth.app_id),
        use_cli_app_id=config.auth.use_cli_app_id,
    )
    return config


def get_config() -> AppConfig:
    """Get the current configuration singleton, loading it on first call.

    Thread-safe: protected by _config_lock.

    Raises:
        ConfigLoadError: If the file cannot be loaded
        ConfigValidationError: If validation fails
    """
    global _current_config

    with _config_lock:
        if _current_config is None:
            _current_config = load_config()
        return _current_config


def validate_config_file(path: Path | None = None) -> tuple[bool, str]:
    """Validate a config file without loading it into the singleton.

    Returns:
        Tuple of (is_valid, message)
    """
    try:
        config = load_config(path)
    except ConfigLoadError as e:
        return (False, f"Load error: {e}")
    except ConfigValidationError as e:
        return (False, f"Validation error: {e}")

    app = config.auth.app_id or ("CLI for Microsoft 365" if config.auth.use_cli_app_id else "built-in")
    return (
        True,
        f"Configuration valid (schema version {config.schema_version})\n"
        f"  - tenant: {config.auth.tenant}\n"
        f"  - app: {app}\n"
        f"  - auth type: {config.auth.auth_type}\n"
        f"  - token cache: {config.auth.token_cache_path}",
    )


def reset_config() -> None:
    """Reset the config singleton. Primarily for testing."""
    global _current_config
    with _config_lock:
        _current_config = None
