"""
Configuration management for DAV test framework.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

from .exceptions import ConfigurationError
from .filters import parse_filter

logger = logging.getLogger(__name__)

# Module-level lock for thread-safe config loading
_config_lock = threading.Lock()

__all__ = ["ConfigurationError", "ServerConfig", "load_config", "validate_config"]


@dataclass
class ServerConfig:
    """Description of the server under test and of how to drive it."""

    # Server connection
    server_url: str = "http://localhost:8008"
    username: Optional[str] = None
    password: Optional[str] = None
    timeout_seconds: int = 10
    max_retries: int = 3

    # Advertised capabilities, matched against require/exclude features
    features: List[str] = field(default_factory=list)

    # Substitution variables, e.g. "$userid1:" -> "user01"
    substitutions: Dict[str, str] = field(default_factory=dict)
    # Number of "$uidN:" variables regenerated by suites marked change_uid
    uid_count: int = 10

    # Default filters merged into every calendar data comparison
    calendar_data_filters: List[str] = field(default_factory=list)

    # Base directory for request bodies and expected fixtures
    data_dir: str = "."

    # Run control
    report_format: str = "console"  # console, junit, json
    stop_on_fail: bool = False

    def __post_init__(self) -> None:
        """Normalize loosely typed YAML values."""
        if isinstance(self.features, str):
            self.features = [f.strip() for f in self.features.split(",") if f.strip()]
        if isinstance(self.calendar_data_filters, str):
            self.calendar_data_filters = self.calendar_data_filters.split()
        if self.substitutions is None:
            self.substitutions = {}
        self.substitutions = {str(k): str(v) for k, v in self.substitutions.items()}


def _parse_env_int(var_name: str) -> Optional[int]:
    """
    Safely parse an integer from an environment variable.

    Args:
        var_name: Name of the environment variable

    Returns:
        Parsed integer value, or None if the variable is not set

    Raises:
        ConfigurationError: If the value cannot be parsed as an integer
    """
    value = os.environ.get(var_name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            f"Environment variable {var_name} must be a valid integer, got: '{value}'"
        )


def load_config(config_file: Optional[str] = None) -> ServerConfig:
    """
    Load configuration from file and environment variables.

    Configuration precedence (highest to lowest):
    1. Environment variables
    2. Configuration file
    3. Default values

    Args:
        config_file: Path to YAML configuration file (optional)

    Returns:
        ServerConfig object with merged configuration

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
        ConfigurationError: If config file has invalid YAML, is not a mapping,
            or env vars are invalid
    """
    with _config_lock:
        config_data: Dict[str, Any] = {}

        if config_file:
            logger.info("Loading server configuration from %s", config_file)
            try:
                with open(config_file, "r") as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in config file '{config_file}': {e}")
            except FileNotFoundError:
                raise FileNotFoundError(f"Configuration file not found: {config_file}")
            except PermissionError:
                raise ConfigurationError(f"Permission denied reading config file '{config_file}'")
            except OSError as e:
                raise ConfigurationError(f"Unable to read config file '{config_file}': {e}")

            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    f"Config file '{config_file}' must contain a mapping at the top level"
                )
            config_data.update(file_config)

        env_overrides = _load_from_env()
        config_data.update(env_overrides)
        if env_overrides:
            logger.debug("Applied environment variable overrides: %s", list(env_overrides.keys()))

        try:
            return ServerConfig(**config_data)
        except (TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}")


def _load_from_env() -> Dict[str, Any]:
    """
    Load configuration from environment variables.

    Supported environment variables:
    - DAV_URL: Base URL of the server under test
    - DAV_USERNAME / DAV_PASSWORD: Basic auth credentials
    - DAV_TIMEOUT: Request timeout in seconds
    - DAV_REPORT_FORMAT: Report format (console, junit, json)
    - DAV_FEATURES: Comma-separated advertised features
    - DAV_DATA_DIR: Base directory for request bodies and fixtures

    Returns:
        Dictionary of configuration values from environment

    Raises:
        ConfigurationError: If environment variable values are invalid
    """
    env_config: Dict[str, Any] = {}

    if "DAV_URL" in os.environ:
        env_config["server_url"] = os.environ["DAV_URL"]

    if "DAV_USERNAME" in os.environ:
        env_config["username"] = os.environ["DAV_USERNAME"]

    if "DAV_PASSWORD" in os.environ:
        env_config["password"] = os.environ["DAV_PASSWORD"]

    timeout = _parse_env_int("DAV_TIMEOUT")
    if timeout is not None:
        if timeout <= 0:
            raise ConfigurationError(
                f"Environment variable DAV_TIMEOUT must be a positive integer, got: {timeout}"
            )
        env_config["timeout_seconds"] = timeout

    if "DAV_REPORT_FORMAT" in os.environ:
        env_config["report_format"] = os.environ["DAV_REPORT_FORMAT"]

    if "DAV_FEATURES" in os.environ:
        env_config["features"] = [
            f.strip() for f in os.environ["DAV_FEATURES"].split(",") if f.strip()
        ]

    if "DAV_DATA_DIR" in os.environ:
        env_config["data_dir"] = os.environ["DAV_DATA_DIR"]

    return env_config


def _validate_url(url: str, field_name: str) -> List[str]:
    """Validate a URL and return any errors."""
    errors: List[str] = []
    if not url:
        errors.append(f"{field_name} is required")
        return errors

    if not (url.startswith("http://") or url.startswith("https://")):
        errors.append(f"{field_name} must start with http:// or https://: {url}")
        return errors

    try:
        parsed = urlparse(url)
        if not parsed.hostname:
            errors.append(f"{field_name} has no hostname: {url}")
        if parsed.port is not None and (parsed.port < 1 or parsed.port > 65535):
            errors.append(f"{field_name} has invalid port number: {parsed.port}")
    except ValueError:
        errors.append(f"{field_name} is not a valid URL: {url}")

    return errors


def validate_config(config: ServerConfig) -> List[str]:
    """
    Validate configuration and return list of errors.

    Args:
        config: ServerConfig to validate

    Returns:
        List of error messages (empty if valid)
    """
    errors: List[str] = []

    errors.extend(_validate_url(config.server_url, "server_url"))

    if config.timeout_seconds <= 0:
        errors.append(f"timeout_seconds must be positive: {config.timeout_seconds}")
    elif config.timeout_seconds > 300:
        errors.append(f"timeout_seconds is too large (max 300): {config.timeout_seconds}")

    if config.max_retries < 0:
        errors.append(f"max_retries must not be negative: {config.max_retries}")

    if config.uid_count < 0:
        errors.append(f"uid_count must not be negative: {config.uid_count}")

    valid_formats = ["console", "junit", "json"]
    if config.report_format not in valid_formats:
        errors.append(f"report_format must be one of {valid_formats}: {config.report_format}")

    if config.password and not config.username:
        errors.append("password is set but username is missing")

    for text in config.calendar_data_filters:
        try:
            parse_filter(text)
        except ValueError as e:
            errors.append(f"calendar_data_filters entry '{text}' is invalid: {e}")

    if not os.path.isdir(config.data_dir):
        errors.append(f"data_dir does not exist: {config.data_dir}")

    return errors
