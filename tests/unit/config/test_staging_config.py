"""Tests for the staging configuration schema and loader."""

import json

import pytest
from pydantic import ValidationError

from ec2_staging.config import LoggingConfig, StagingConfig, load_config
from ec2_staging.domain.base.exceptions import ConfigurationError
from ec2_staging.domain.resource.states import ExitPolicy


@pytest.mark.unit
class TestStagingConfig:
    """Test defaults and validation."""

    def test_defaults(self):
        config = StagingConfig()

        assert config.exit_policy == ExitPolicy.TERMINATE
        assert config.poll_interval == 3.0
        assert config.probe_interval == 5.0
        assert config.server_startup_timeout == 120.0
        assert config.rate_limit_max_attempts == 7
        assert config.rate_limit_base_delay == 2.0
        assert config.rate_limit_max_delay == 64.0
        assert config.reuse_keys is True
        assert config.reuse_servers is True
        assert config.username == "ubuntu"
        assert config.mount_root == "/mnt/DataTransfer"
        assert isinstance(config.logging, LoggingConfig)

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("terminate", ExitPolicy.TERMINATE),
            ("STOP", ExitPolicy.STOP),
            ("leave-running", ExitPolicy.LEAVE_RUNNING),
            ("run", ExitPolicy.LEAVE_RUNNING),
            ("leave_running", ExitPolicy.LEAVE_RUNNING),
        ],
    )
    def test_exit_policy_spellings(self, value, expected):
        assert StagingConfig(exit_policy=value).exit_policy == expected

    def test_unknown_exit_policy_rejected(self):
        with pytest.raises(ValidationError):
            StagingConfig(exit_policy="hibernate")

    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            StagingConfig(instance_count=3)

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValidationError):
            StagingConfig(wait_timeout=-1)

    def test_stop_policy_searches_ebs_images(self):
        assert StagingConfig(exit_policy="stop").search_root_type == "ebs"
        assert StagingConfig(exit_policy="terminate").search_root_type == "instance-store"


@pytest.mark.unit
class TestLoadConfig:
    """Test layering of file, environment and overrides."""

    def test_defaults_without_sources(self):
        assert load_config(environ={}) == StagingConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "staging.yml"
        path.write_text("exit_policy: stop\ninstance_type: m1.large\nlogging:\n  level: DEBUG\n")

        config = load_config(path, environ={})

        assert config.exit_policy == ExitPolicy.STOP
        assert config.instance_type == "m1.large"
        assert config.logging.level == "DEBUG"

    def test_json_file_nested_under_staging(self, tmp_path):
        path = tmp_path / "staging.json"
        path.write_text(json.dumps({"staging": {"region": "eu-west-1", "reuse_keys": False}}))

        config = load_config(path, environ={})

        assert config.region == "eu-west-1"
        assert config.reuse_keys is False

    def test_discovered_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STAGING_CONFIG_DIR", str(tmp_path))
        (tmp_path / "staging.yaml").write_text("username: ec2-user\n")

        assert load_config(environ={}).username == "ec2-user"

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "staging.yml"
        path.write_text("poll_interval: 10\nlogging:\n  console_enabled: false\n")

        config = load_config(
            path,
            environ={
                "STAGING_POLL_INTERVAL": "1.5",
                "STAGING_LOG_LEVEL": "WARNING",
                "STAGING_KEY_DIR": "/ignored",
                "OTHER": "x",
            },
        )

        assert config.poll_interval == 1.5
        assert config.logging.level == "WARNING"
        assert config.logging.console_enabled is False
        assert config.key_directory is None

    def test_keyword_overrides_win(self, tmp_path):
        config = load_config(
            environ={"STAGING_EXIT_POLICY": "stop"}, exit_policy="leave-running", region=None
        )

        assert config.exit_policy == ExitPolicy.LEAVE_RUNNING
        assert config.region is None

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "absent.yml", environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "staging.yml"
        path.write_text("exit_policy: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid config file"):
            load_config(path, environ={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "staging.yml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path, environ={})

    def test_invalid_value(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid staging configuration"):
            load_config(environ={"STAGING_POLL_INTERVAL": "never"})
