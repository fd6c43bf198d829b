"""Load StagingConfig from file, environment and keyword overrides."""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from ec2_staging.config.platform_dirs import find_config_file
from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import ConfigurationError

ENV_PREFIX = "STAGING_"

# Directory variables are read by platform_dirs, not mapped onto fields.
_RESERVED_ENV = {"STAGING_CONFIG_DIR", "STAGING_KEY_DIR", "STAGING_LOG_DIR"}


def _read_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    # Accept either a bare mapping or one nested under "staging".
    if isinstance(data.get("staging"), dict):
        return dict(data["staging"])
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    fields = StagingConfig.model_fields
    overrides: dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue
        name = key[len(ENV_PREFIX) :].lower()
        if name == "log_level":
            overrides.setdefault("logging", {})["level"] = value
        elif name in fields and name != "logging":
            overrides[name] = value
    return overrides


def _merge(base: dict[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> StagingConfig:
    """
    Build a StagingConfig.

    Sources, lowest precedence first: the config file (``path`` or the first
    staging.{yml,yaml,json} found by platform_dirs), ``STAGING_*`` environment
    variables, then keyword overrides.

    :param path: Explicit config file. Must exist when given.
    :param environ: Environment mapping, ``os.environ`` by default.
    :raises ConfigurationError: If the file is unreadable or values are invalid.
    """
    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(f"Config file not found: {config_path}")
        data = _read_file(config_path)
    elif (found := find_config_file()) is not None:
        data = _read_file(found)

    data = _merge(data, _env_overrides(os.environ if environ is None else environ))
    data = _merge(data, {k: v for k, v in overrides.items() if v is not None})

    try:
        return StagingConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid staging configuration: {e}") from e
