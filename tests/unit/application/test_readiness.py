"""Tests for the readiness prober."""

import pytest

from ec2_staging.application.readiness import ReadinessProber
from ec2_staging.domain.base.exceptions import ReadinessTimeoutError
from ec2_staging.domain.resource.models import ManagedServer
from ec2_staging.domain.resource.states import ServerState
from tests.fixtures.fake_cloud import FakeClock, FakeProbe, FakeRemote


def running_server(instance_id):
    return ManagedServer(
        remote=FakeRemote("instance", instance_id, "us-east-1a"),
        username="ubuntu",
        state=ServerState.RUNNING,
    )


@pytest.mark.unit
class TestReadinessProber:
    """Test probe retries and deadline reporting."""

    def setup_method(self):
        self.clock = FakeClock()

    def test_retries_with_fixed_delay_until_reachable(self):
        probe = FakeProbe({"i-1": [False, False, True]})
        prober = ReadinessProber(probe, interval=5.0, sleep=self.clock.sleep, clock=self.clock)
        server = running_server("i-1")

        result = prober.await_reachable([server], timeout=60)

        assert result == [server]
        assert server.reachable is True
        assert probe.calls == ["i-1", "i-1", "i-1"]
        assert self.clock.sleeps == [5.0, 5.0]

    def test_never_consults_remote_status(self):
        server = running_server("i-1")
        prober = ReadinessProber(FakeProbe(), sleep=self.clock.sleep, clock=self.clock)

        prober.await_reachable([server])

        assert server.remote.status_calls == 0

    def test_already_reachable_servers_are_not_probed(self):
        probe = FakeProbe()
        server = running_server("i-1")
        server.reachable = True

        ReadinessProber(probe, sleep=self.clock.sleep, clock=self.clock).await_reachable([server])

        assert probe.calls == []

    def test_timeout_names_unreachable_and_reachable_servers(self):
        probe = FakeProbe({"i-up": [True]}, default=False)
        prober = ReadinessProber(probe, interval=5.0, sleep=self.clock.sleep, clock=self.clock)
        up, down = running_server("i-up"), running_server("i-down")

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            prober.await_reachable([up, down], timeout=12)

        assert exc_info.value.unreachable == ["i-down"]
        assert exc_info.value.reachable == ["i-up"]
        assert up.reachable is True
        assert down.reachable is False
        assert self.clock.now == 12.0
