"""Tests for managed resource models and domain errors."""

import pytest

from ec2_staging.domain.base.exceptions import (
    ConvergenceTimeoutError,
    PermanentAPIError,
    ReadinessTimeoutError,
    StagingError,
)
from ec2_staging.domain.resource.models import ManagedServer, ManagedVolume, ScanResult
from ec2_staging.domain.resource.states import ExitPolicy, ServerState, VolumeState
from tests.fixtures.fake_cloud import FakeRemote


def server_with(**attributes):
    remote = FakeRemote("instance", "i-1", "us-east-1a", attributes=attributes)
    return ManagedServer(remote=remote, username="ubuntu")


@pytest.mark.unit
class TestManagedServer:
    def test_host_prefers_public_dns(self):
        server = server_with(
            public_dns_name="ec2.example.com",
            public_ip_address="203.0.113.7",
            private_ip_address="10.0.0.7",
        )
        assert server.host == "ec2.example.com"

    def test_host_falls_back_to_addresses(self):
        assert server_with(public_ip_address="203.0.113.7").host == "203.0.113.7"
        assert server_with(private_ip_address="10.0.0.7").host == "10.0.0.7"
        assert server_with().host is None

    def test_current_status_updates_state(self):
        server = server_with()
        server.remote.script("stopping")
        server.reachable = True

        assert server.current_status() == "stopping"
        assert server.state == ServerState.STOPPING
        assert server.reachable is False

    def test_unknown_status(self):
        server = server_with()
        server.remote.script("rebooting")

        server.current_status()

        assert server.state == ServerState.UNKNOWN

    def test_identity_comes_from_remote(self):
        server = server_with(instance_type="m1.small")

        assert (server.id, server.zone, server.instance_type) == ("i-1", "us-east-1a", "m1.small")
        assert str(server) == "i-1@us-east-1a"


@pytest.mark.unit
class TestManagedVolume:
    def test_attachment_flag(self):
        volume = ManagedVolume(remote=FakeRemote("volume", "vol-1", "us-east-1a"), name="data")

        assert not volume.is_attached
        volume.server_id = "i-1"
        assert volume.is_attached

    def test_current_status(self):
        remote = FakeRemote("volume", "vol-1", "us-east-1a", statuses=["in-use"])
        volume = ManagedVolume(remote=remote, name="data")

        volume.current_status()

        assert volume.state == VolumeState.IN_USE
        assert str(volume) == "data(vol-1@us-east-1a)"


@pytest.mark.unit
class TestScanResultAndErrors:
    def test_scan_result_to_dict(self):
        result = ScanResult(
            servers=[server_with()],
            skipped={"i-2": "no StagingUsername tag"},
        )

        assert result.to_dict() == {
            "servers": ["i-1"],
            "volumes": [],
            "skipped": {"i-2": "no StagingUsername tag"},
        }

    def test_error_to_dict(self):
        error = StagingError("boom", {"id": "i-1"})

        assert error.to_dict() == {
            "error_type": "StagingError",
            "message": "boom",
            "details": {"id": "i-1"},
        }

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("InvalidInstanceID.NotFound", True),
            ("InvalidGroup.NotFound", True),
            ("NotFound", True),
            ("UnauthorizedOperation", False),
            (None, False),
        ],
    )
    def test_not_found_codes(self, code, expected):
        assert PermanentAPIError("x", code=code).is_not_found is expected

    def test_timeouts_are_timeout_errors(self):
        convergence = ConvergenceTimeoutError("late", pending=["i-1"])
        readiness = ReadinessTimeoutError("late", unreachable=["i-1"], reachable=["i-2"])

        assert isinstance(convergence, TimeoutError)
        assert convergence.details == {"pending": ["i-1"]}
        assert readiness.unreachable == ["i-1"]
        assert readiness.details["reachable"] == ["i-2"]

    def test_exit_policy_str(self):
        assert str(ExitPolicy.LEAVE_RUNNING) == "leave-running"
