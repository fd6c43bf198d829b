"""Local store for generated private keys."""

import os
from pathlib import Path
from typing import Optional, Union

from ec2_staging.config.platform_dirs import get_key_location
from ec2_staging.domain.base.exceptions import CredentialStoreError

KEY_PREFIX = "staging-key-"
KEY_SUFFIX = ".pem"


class CredentialStore:
    """
    A permission-restricted directory with one ``<name>.pem`` file per key pair.

    The directory is created with mode 0700 and every key file with mode 0600.
    Any filesystem failure is raised as CredentialStoreError.
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None) -> None:
        self._directory = Path(os.path.expanduser(str(directory))) if directory else None

    @property
    def directory(self) -> Path:
        """The key directory, created on first use."""
        directory = self._directory or get_key_location()
        if not directory.is_dir():
            try:
                directory.mkdir(mode=0o700, parents=True, exist_ok=True)
                os.chmod(directory, 0o700)
            except OSError as e:
                raise CredentialStoreError(f"mkdir {directory}: {e}") from e
        self._directory = directory
        return directory

    def key_path(self, key_name: str) -> Path:
        return self.directory / f"{key_name}{KEY_SUFFIX}"

    def has_key(self, key_name: str) -> bool:
        return self.key_path(key_name).is_file()

    def find_keyfile(self, key_name: str) -> Optional[str]:
        """Path of the private key for ``key_name`` if it exists locally."""
        path = self.key_path(key_name)
        return str(path) if path.is_file() else None

    def save_private_key(self, key_name: str, material: str) -> str:
        """Write key material with owner-only permissions. Returns the file path."""
        path = self.key_path(key_name)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(material)
            os.chmod(path, 0o600)
        except OSError as e:
            raise CredentialStoreError(f"Couldn't write key file {path}: {e}") from e
        return str(path)

    def delete(self, key_name: str) -> bool:
        """Remove the key file. Returns False when there was nothing to remove."""
        path = self.key_path(key_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CredentialStoreError(f"Couldn't remove key file {path}: {e}") from e
        return True

    def key_names(self) -> list[str]:
        """Names of every staging key stored locally."""
        return sorted(
            p.name[: -len(KEY_SUFFIX)]
            for p in self.directory.glob(f"{KEY_PREFIX}*{KEY_SUFFIX}")
            if p.is_file()
        )
