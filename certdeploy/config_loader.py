"""
Configuration loading, validation, and parsing.

Resolves the deployment inputs once at start-up from (in order of
precedence) command-line overrides, environment variables and an optional
YAML file, and returns them as an immutable DeploymentInput.

Environment variables follow the GitHub Actions input convention
(INPUT_<NAME>, e.g. INPUT_ACCESS-KEY-ID), so the tool can run as a
workflow step without any wrapper script.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .helpers import (
    describe_endpoint,
    parse_bool,
    parse_domains,
    parse_int_input,
)
from .logger import get_logger


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


DEFAULT_TIMEOUT_MS = 10000
DEFAULT_RETRY = 3

MAINLAND_BASE_DOMAIN = "aliyuncs.com"
INTL_BASE_DOMAIN = "ap-southeast-1.aliyuncs.com"
MAINLAND_CERT_REGION = "cn-hangzhou"
INTL_CERT_REGION = "ap-southeast-1"

# Input keys and the extra environment variables consulted for each of them
INPUT_KEYS = {
    "access_key_id": ("ALIBABA_CLOUD_ACCESS_KEY_ID",),
    "access_key_secret": ("ALIBABA_CLOUD_ACCESS_KEY_SECRET",),
    "security_token": ("ALIBABA_CLOUD_SECURITY_TOKEN",),
    "fullchain_file": (),
    "key_file": (),
    "certificate_name": (),
    "cdn_domains": (),
    "timeout": (),
    "retry": (),
    "use_intl_endpoint": (),
    "dry_run": (),
    "continue_on_error": (),
}


@dataclass(frozen=True)
class DeploymentInput:
    """
    Immutable deployment configuration for a single run.

    Derived endpoint values are exposed as properties so that nothing
    downstream has to know how the endpoint family is selected.
    """
    access_key_id: str
    access_key_secret: str
    certificate_name: str
    fullchain_file: str
    key_file: str
    security_token: Optional[str] = None
    cdn_domains: Tuple[str, ...] = ()
    timeout: int = DEFAULT_TIMEOUT_MS
    retry: int = DEFAULT_RETRY
    use_intl_endpoint: bool = False
    dry_run: bool = False
    continue_on_error: bool = False

    @property
    def base_domain(self) -> str:
        """API base domain for the selected endpoint family."""
        return INTL_BASE_DOMAIN if self.use_intl_endpoint else MAINLAND_BASE_DOMAIN

    @property
    def cas_endpoint(self) -> str:
        """Certificate Management Service endpoint URL."""
        return f"https://cas.{self.base_domain}"

    @property
    def cdn_endpoint(self) -> str:
        """CDN endpoint URL."""
        return f"https://cdn.{self.base_domain}"

    @property
    def cert_region(self) -> str:
        """Region the uploaded certificate lives in, as CDN expects it."""
        return INTL_CERT_REGION if self.use_intl_endpoint else MAINLAND_CERT_REGION

    @property
    def timeout_seconds(self) -> float:
        """Request timeout converted to seconds."""
        return self.timeout / 1000.0


def _expand_env_vars(value: Any) -> Any:
    """
    Expand environment variables in string values.

    Supports ${VAR_NAME} syntax. Unknown variables are left untouched.

    Args:
        value: Value to expand (string, dict, or list)

    Returns:
        Value with environment variables expanded
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}]+)\}"

        def replace(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]

    return value


def _load_yaml_section(config_path: str) -> Dict[str, Any]:
    """
    Load the 'deployment' section of a YAML configuration file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Mapping of input keys to raw values

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    if path.suffix not in (".yaml", ".yml"):
        raise ConfigurationError(
            f"Configuration file must be YAML (.yaml or .yml): {config_path}"
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
    except IOError as e:
        raise ConfigurationError(f"Failed to read configuration file: {e}")

    if not raw_data:
        raise ConfigurationError("Configuration file is empty")
    if not isinstance(raw_data, dict) or not isinstance(raw_data.get("deployment"), dict):
        raise ConfigurationError("Missing 'deployment' section in configuration")

    section = {
        str(key).replace("-", "_"): value
        for key, value in _expand_env_vars(raw_data["deployment"]).items()
    }

    unknown = sorted(set(section) - set(INPUT_KEYS))
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in 'deployment' section: {', '.join(unknown)}"
        )

    return section


def _read_env_input(key: str, environ: Mapping[str, str]) -> Optional[str]:
    """
    Read one input from the environment.

    Checks INPUT_ACCESS-KEY-ID, then INPUT_ACCESS_KEY_ID, then any
    provider-wide fallbacks registered for the key.
    """
    upper = key.upper()
    names = [f"INPUT_{upper.replace('_', '-')}", f"INPUT_{upper}"]
    names.extend(INPUT_KEYS[key])

    for name in names:
        value = environ.get(name)
        if value is not None and value.strip() != "":
            return value.strip()

    return None


def _validate(config: DeploymentInput) -> None:
    """
    Validate a resolved configuration.

    Raises:
        ConfigurationError: On the first invalid value
    """
    if not config.certificate_name:
        raise ConfigurationError("certificate-name is required")
    if not config.access_key_id or not config.access_key_secret:
        raise ConfigurationError(
            "Both access-key-id and access-key-secret are required"
        )
    if not config.fullchain_file:
        raise ConfigurationError("fullchain-file is required")
    if not config.key_file:
        raise ConfigurationError("key-file is required")
    if config.timeout < 1:
        raise ConfigurationError(
            f"timeout must be a positive number of milliseconds, got {config.timeout}"
        )
    if config.retry < 1:
        raise ConfigurationError(f"retry must be at least 1, got {config.retry}")


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DeploymentInput:
    """
    Resolve and validate the deployment configuration.

    Args:
        config_path: Optional path to a YAML file with a 'deployment' section
        overrides: Values from the command line (None entries are ignored)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated DeploymentInput instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    logger = get_logger()
    environ = os.environ if environ is None else environ
    overrides = overrides or {}

    file_values: Dict[str, Any] = {}
    if config_path:
        file_values = _load_yaml_section(config_path)

    raw: Dict[str, Any] = {}
    for key in INPUT_KEYS:
        value = overrides.get(key)
        if value is None or value == "":
            value = _read_env_input(key, environ)
        if value is None:
            value = file_values.get(key)
        raw[key] = value

    try:
        use_intl_endpoint = parse_bool(raw["use_intl_endpoint"])
        dry_run = parse_bool(raw["dry_run"])
        continue_on_error = parse_bool(raw["continue_on_error"])
    except ValueError as e:
        raise ConfigurationError(str(e))

    config = DeploymentInput(
        access_key_id=_as_text(raw["access_key_id"]),
        access_key_secret=_as_text(raw["access_key_secret"]),
        security_token=_as_text(raw["security_token"]) or None,
        certificate_name=_as_text(raw["certificate_name"]).strip(),
        fullchain_file=_as_text(raw["fullchain_file"]),
        key_file=_as_text(raw["key_file"]),
        cdn_domains=parse_domains(raw["cdn_domains"]),
        timeout=parse_int_input(raw["timeout"], DEFAULT_TIMEOUT_MS),
        retry=parse_int_input(raw["retry"], DEFAULT_RETRY),
        use_intl_endpoint=use_intl_endpoint,
        dry_run=dry_run,
        continue_on_error=continue_on_error,
    )

    _validate(config)

    if config_path:
        logger.info(f"Loaded configuration from {config_path}")
    logger.info(f"  Certificate name: {config.certificate_name}")
    logger.info(f"  Endpoint: {describe_endpoint(config.use_intl_endpoint)}")
    logger.info(f"  CDN domains: {len(config.cdn_domains)}")
    logger.info(f"  Timeout: {config.timeout} ms, retry: {config.retry}")
    logger.debug(f"  Security token: {'set' if config.security_token else 'not set'}")

    return config


def _as_text(value: Any) -> str:
    """
    Convert a raw input value to text.

    Lists from YAML are joined with spaces, the form workflow inputs use.

    Args:
        value: Raw input value

    Returns:
        Text form (empty for None)
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)
