"""SSH readiness probing."""

from ec2_staging.providers.ssh.ssh_probe import SshReadinessProbe

__all__: list[str] = ["SshReadinessProbe"]
