"""Tests for the local credential store."""

import os
import stat
from unittest.mock import patch

import pytest

from ec2_staging.application.credentials import CredentialStore
from ec2_staging.domain.base.exceptions import CredentialStoreError


@pytest.mark.unit
class TestCredentialStore:
    """Test key file permissions and lookups."""

    def test_directory_is_created_owner_only(self, temp_dir):
        store = CredentialStore(temp_dir / "keys")

        directory = store.directory

        assert directory.is_dir()
        assert stat.S_IMODE(directory.stat().st_mode) == 0o700

    def test_private_key_is_written_owner_read_write(self, temp_dir):
        store = CredentialStore(temp_dir / "keys")

        path = store.save_private_key("staging-key-abc", "PRIVATE")

        assert path == str(temp_dir / "keys" / "staging-key-abc.pem")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert open(path, encoding="utf-8").read() == "PRIVATE"
        assert store.has_key("staging-key-abc")
        assert store.find_keyfile("staging-key-abc") == path
        assert store.key_names() == ["staging-key-abc"]

    def test_missing_key_is_not_found(self, temp_dir):
        store = CredentialStore(temp_dir / "keys")

        assert store.find_keyfile("staging-key-none") is None
        assert store.delete("staging-key-none") is False

    def test_delete_removes_key_file(self, temp_dir):
        store = CredentialStore(temp_dir / "keys")
        store.save_private_key("staging-key-abc", "PRIVATE")

        assert store.delete("staging-key-abc") is True
        assert not store.has_key("staging-key-abc")

    def test_default_directory_comes_from_environment(self, tmp_path):
        assert CredentialStore().directory == tmp_path / "keys"

    def test_write_failure_raises_credential_store_error(self, temp_dir):
        store = CredentialStore(temp_dir / "keys")

        with patch("ec2_staging.application.credentials.os.open", side_effect=PermissionError("denied")):
            with pytest.raises(CredentialStoreError, match="Couldn't write key file"):
                store.save_private_key("staging-key-abc", "PRIVATE")
