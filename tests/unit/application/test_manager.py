"""Tests for the staging manager scope and delegations."""

from unittest.mock import patch

import pytest

from ec2_staging.application.manager import StagingManager
from ec2_staging.config.schemas.staging_schema import StagingConfig
from ec2_staging.domain.base.exceptions import (
    CleanupError,
    PermanentAPIError,
    ProvisioningError,
)
from ec2_staging.domain.resource.models import ManagedServer, ServerConstraints, VolumeConstraints
from ec2_staging.domain.resource.states import ExitPolicy, ServerState
from ec2_staging.providers.aws.infrastructure.ec2_gateway import Ec2Gateway

ZONE = "us-east-1a"


def build_manager(gateway, probe, clock, temp_dir, **options):
    config = StagingConfig(key_directory=str(temp_dir), **options)
    return StagingManager(gateway, probe, config=config, sleep=clock.sleep, clock=clock)


def register_server(manager, gateway, state="running"):
    remote = gateway.add_instance(ZONE, state=state)
    return manager.registry.register(
        ManagedServer(remote=remote, username="ubuntu", state=ServerState(state))
    )


@pytest.mark.unit
class TestExitPolicy:
    """Test that the exit policy runs once on every exit path."""

    def test_terminate_policy_terminates_each_server_once(self, gateway, probe, clock, temp_dir):
        manager = build_manager(gateway, probe, clock, temp_dir, exit_policy="terminate")
        first = register_server(manager, gateway)
        second = register_server(manager, gateway)

        with patch.object(
            manager.lifecycle, "terminate_all", wraps=manager.lifecycle.terminate_all
        ) as terminate_all:
            with manager:
                pass

        terminate_all.assert_called_once_with()
        [call] = gateway.calls_to("terminate_instances")
        assert sorted(call["instance_ids"]) == sorted([first.id, second.id])
        assert manager.servers() == []
        assert manager.closed

    def test_policy_runs_when_the_body_raises(self, gateway, probe, clock, temp_dir):
        manager = build_manager(gateway, probe, clock, temp_dir, exit_policy="terminate")
        register_server(manager, gateway)

        with pytest.raises(RuntimeError):
            with manager:
                raise RuntimeError("transfer failed")

        assert len(gateway.calls_to("terminate_instances")) == 1

    def test_stop_policy(self, gateway, probe, clock, temp_dir):
        manager = build_manager(gateway, probe, clock, temp_dir, exit_policy="stop")
        server = register_server(manager, gateway)

        with manager:
            pass

        assert gateway.calls_to("stop_instances") == [{"instance_ids": [server.id]}]
        assert manager.servers() == [server]

    def test_leave_running_issues_no_calls(self, manager, gateway):
        register_server(manager, gateway)

        with manager:
            pass

        assert gateway.calls == []

    def test_shutdown_runs_once(self, gateway, probe, clock, temp_dir):
        manager = build_manager(gateway, probe, clock, temp_dir, exit_policy="terminate")
        register_server(manager, gateway)

        manager.shutdown()
        manager.shutdown()
        with manager:
            pass

        assert len(gateway.calls_to("terminate_instances")) == 1

    def test_policy_failure_raises_cleanup_error(self, gateway, probe, clock, temp_dir):
        manager = build_manager(gateway, probe, clock, temp_dir, exit_policy="terminate")
        server = register_server(manager, gateway)
        failure = PermanentAPIError("AWS Error: UnauthorizedOperation - denied")
        gateway.errors["terminate_instances"] = [failure]

        with pytest.raises(CleanupError) as exc_info:
            manager.shutdown()

        assert exc_info.value.__cause__ is failure
        assert exc_info.value.details["servers"] == [server.id]
        assert manager.servers() == [server]

    def test_cleanup_error_keeps_the_body_error_as_context(
        self, gateway, probe, clock, temp_dir
    ):
        manager = build_manager(gateway, probe, clock, temp_dir, exit_policy="terminate")
        register_server(manager, gateway)
        gateway.errors["terminate_instances"] = [PermanentAPIError("denied")]

        with pytest.raises(CleanupError) as exc_info:
            with manager:
                raise RuntimeError("transfer failed")

        chain = []
        error = exc_info.value.__context__
        while error is not None:
            chain.append(type(error))
            error = error.__context__
        assert chain[0] is PermanentAPIError
        assert RuntimeError in chain


@pytest.mark.unit
class TestDelegation:
    """Test the manager's query helpers and transfer metadata."""

    def test_active_servers_excludes_terminated(self, manager, gateway):
        running = register_server(manager, gateway)
        register_server(manager, gateway, state="shutting-down")

        assert manager.active_servers() == [running]

    def test_transfer_endpoint_for_attached_volume(self, manager, gateway):
        server = manager.provision_server(ServerConstraints(availability_zone=ZONE))
        volume = manager.provision_volume(VolumeConstraints(name="data", availability_zone=ZONE))
        manager.attach_volume(volume, server)

        endpoint = manager.transfer_endpoint(volume, "/incoming")

        assert endpoint.host == server.host
        assert endpoint.username == "ubuntu"
        assert endpoint.keyfile == server.keyfile
        assert endpoint.path == "/mnt/DataTransfer/data/incoming"
        assert endpoint.server_id == server.id

    def test_transfer_endpoint_requires_attachment(self, manager):
        volume = manager.provision_volume(VolumeConstraints(name="data", availability_zone=ZONE))

        with pytest.raises(ProvisioningError):
            manager.transfer_endpoint(volume)

    def test_volume_description(self, manager):
        assert manager.volume_description("logs") == (
            "Staging volume for logs created by ec2_staging"
        )

    def test_repr_mentions_policy(self, manager):
        assert "leave-running" in repr(manager)

    def test_from_config_wires_boto3_and_ssh(self, temp_dir):
        config = StagingConfig(key_directory=str(temp_dir), region="eu-west-1")

        with (
            patch("ec2_staging.providers.aws.infrastructure.aws_client.AWSClient") as client_cls,
            patch("ec2_staging.providers.ssh.ssh_probe.SshReadinessProbe") as probe_cls,
        ):
            manager = StagingManager.from_config(config)

        client_cls.assert_called_once_with(config)
        probe_cls.assert_called_once_with(timeout=config.probe_timeout)
        assert manager.config is config
        assert manager.config.exit_policy == ExitPolicy.TERMINATE
        assert isinstance(manager.gateway.wrapped, Ec2Gateway)
        assert manager.gateway.wrapped.aws_client is client_cls.return_value
