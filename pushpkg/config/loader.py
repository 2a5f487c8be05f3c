# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader — reads YAML from disk, overlays secrets from the environment,
and produces a validated, frozen PushPackageConfig.

The loading pipeline is linear:
  1. Read raw text from the file
  2. Parse as YAML into a plain dict
  3. Overlay the secrets found in the environment
  4. Hand the dict to pydantic for schema validation
  5. Return the frozen config object

The environment is read here and nowhere else. Every other module receives
the config object; no stage looks at os.environ on its own.
"""

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from pushpkg.config.exceptions import ConfigLoadError, ConfigValidationError
from pushpkg.config.schema import BuildConfig, PushPackageConfig

DEFAULT_CONFIG_PATH = Path("configs/pushpackage.yaml")
CONFIG_PATH_ENV = "PUSHPKG_CONFIG"

# environment variable -> (section, field)
SECRET_ENV_VARS: dict[str, tuple[str, str]] = {
    "PUSH_NOTIFICATION_AUTHENTICATION_TOKEN": ("website", "authentication_token"),
    "PUSH_NOTIFICATION_P12": ("credentials", "p12_base64"),
    "PUSH_NOTIFICATION_CERT_PASSWORD": ("credentials", "passphrase"),
    "PUSH_NOTIFICATION_APPLE_PEM": ("credentials", "issuer_certificate_pem"),
}


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def _overlay_secrets(raw_data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Copy set, non-empty secret variables into their config sections."""
    merged = dict(raw_data)
    for env_name, (section, field_name) in SECRET_ENV_VARS.items():
        value = environ.get(env_name)
        if value is None or (value == "" and field_name != "passphrase"):
            continue
        existing = merged.get(section) or {}
        if not isinstance(existing, dict):
            # Leave it alone, schema validation reports the bad section.
            continue
        section_data = dict(existing)
        section_data[field_name] = value
        merged[section] = section_data
    return merged


def resolve_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Config location: $PUSHPKG_CONFIG when set, otherwise configs/pushpackage.yaml."""
    env = os.environ if environ is None else environ
    override = env.get(CONFIG_PATH_ENV)
    if override:
        return Path(override)
    return DEFAULT_CONFIG_PATH


def peek_output_archive(config_path: Path) -> Optional[Path]:
    """
    Read build.output_archive from the raw YAML without schema validation.

    Used when the config fails validation, so a failed run can still remove
    the archive left by an earlier build. Falls back to the schema default
    when the key is absent.

    Returns:
        The archive path, or None if the file can't be read or the value
        isn't a usable string.
    """
    try:
        raw_data = _read_yaml_file(config_path)
    except ConfigLoadError:
        return None

    build_section = raw_data.get("build")
    if not isinstance(build_section, dict):
        build_section = {}
    value = build_section.get(
        "output_archive", BuildConfig.model_fields["output_archive"].default
    )
    if not isinstance(value, str) or not value:
        return None
    return Path(value)


def load_config(
    config_path: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> PushPackageConfig:
    """
    Load, validate, and freeze a config file into a PushPackageConfig.

    This is the single entry point for config loading. After it returns the
    config is structurally valid, type-safe and immutable.

    Args:
        config_path: Path to a YAML config file.
        environ: Mapping to read secrets from. Defaults to os.environ; tests
                 pass their own dict.

    Returns:
        A fully validated, frozen PushPackageConfig instance.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations, including missing secrets.
    """
    raw_data = _read_yaml_file(config_path)
    merged = _overlay_secrets(raw_data, os.environ if environ is None else environ)

    try:
        config = PushPackageConfig.model_validate(merged)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err

    return config
