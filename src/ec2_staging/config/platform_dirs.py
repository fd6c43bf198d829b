"""Platform-specific directory detection for staging manager files."""

import os
import sys
from pathlib import Path

DEFAULT_KEY_DIRNAME = ".vm_ec2_staging"
CONFIG_FILENAMES = ("staging.yml", "staging.yaml", "staging.json")


def in_virtualenv() -> bool:
    """Check if running in a virtual environment."""
    return sys.prefix != sys.base_prefix


def is_user_install() -> bool:
    """Check if this is a user install (pip install --user)."""
    return sys.prefix.startswith(str(Path.home()))


def is_system_install() -> bool:
    """Check if this is a system install."""
    return sys.prefix.startswith(("/usr", "/opt"))


def get_config_location() -> Path:
    """Get config location.

    Priority:
    1. STAGING_CONFIG_DIR environment variable
    2. Development: ./config if pyproject.toml exists in parent chain
    3. User install: ~/.config/ec2_staging
    4. System install: <prefix>/etc/ec2_staging
    5. Virtualenv: sibling to venv
    6. Fallback: current directory
    """
    if env_dir := os.environ.get("STAGING_CONFIG_DIR"):
        return Path(env_dir)

    cwd = Path.cwd()
    for parent in [cwd] + list(cwd.parents):
        if (parent / "pyproject.toml").exists():
            return parent / "config"

    if is_user_install():
        return Path.home() / ".config" / "ec2_staging"

    if is_system_install():
        return Path(sys.prefix) / "etc" / "ec2_staging"

    if in_virtualenv():
        return Path(sys.prefix).parent / "config"

    return cwd / "config"


def find_config_file() -> Path | None:
    """Return the first existing config file in the config location, if any."""
    location = get_config_location()
    for filename in CONFIG_FILENAMES:
        candidate = location / filename
        if candidate.is_file():
            return candidate
    return None


def get_key_location() -> Path:
    """Get the directory holding generated private keys.

    Priority:
    1. STAGING_KEY_DIR environment variable
    2. ~/.vm_ec2_staging
    """
    if env_dir := os.environ.get("STAGING_KEY_DIR"):
        return Path(env_dir)

    return Path.home() / DEFAULT_KEY_DIRNAME


def get_logs_location() -> Path:
    """Get logs directory location.

    Priority:
    1. STAGING_LOG_DIR environment variable
    2. Sibling to config directory
    """
    if env_dir := os.environ.get("STAGING_LOG_DIR"):
        return Path(env_dir)

    return get_config_location().parent / "logs"
