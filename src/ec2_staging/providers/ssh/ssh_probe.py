"""SSH readiness probe built on paramiko."""

from typing import Optional

import paramiko

from ec2_staging.domain.base.ports.logging_port import LoggingPort
from ec2_staging.domain.base.ports.readiness_probe_port import ReadinessProbePort
from ec2_staging.domain.resource.models import ManagedServer
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter


class SshReadinessProbe(ReadinessProbePort):
    """A server is ready once it accepts its key and runs ``true``."""

    def __init__(
        self,
        timeout: float = 10.0,
        port: int = 22,
        command: str = "true",
        logger: Optional[LoggingPort] = None,
    ) -> None:
        self.timeout = timeout
        self.port = port
        self.command = command
        self._logger = logger or LoggingAdapter("ssh")

    def _client(self) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        return client

    def probe(self, server: ManagedServer) -> bool:
        host = server.host
        if not host:
            self._logger.debug("Server %s has no address yet", server.id)
            return False

        client = self._client()
        try:
            client.connect(
                host,
                port=self.port,
                username=server.username,
                key_filename=server.keyfile,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            _, stdout, _ = client.exec_command(self.command, timeout=self.timeout)
            return stdout.channel.recv_exit_status() == 0
        except (paramiko.SSHException, OSError) as e:
            self._logger.debug("Probe of %s (%s) failed: %s", server.id, host, e)
            return False
        finally:
            client.close()
