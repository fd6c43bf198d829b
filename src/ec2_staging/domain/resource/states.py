"""Resource state enumerations and terminal-state conventions."""

from ec2_staging.domain.base.enums import BaseEnumModel


class ServerState(BaseEnumModel):
    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    UNKNOWN = "unknown"


class VolumeState(BaseEnumModel):
    CREATING = "creating"
    AVAILABLE = "available"
    IN_USE = "in-use"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"
    UNKNOWN = "unknown"


class AttachmentState(BaseEnumModel):
    ATTACHING = "attaching"
    ATTACHED = "attached"
    DETACHING = "detaching"
    DETACHED = "detached"


class SnapshotState(BaseEnumModel):
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class ExitPolicy(BaseEnumModel):
    """Disposition applied to every registered server when the manager closes."""

    TERMINATE = "terminate"
    STOP = "stop"
    LEAVE_RUNNING = "leave-running"

    @classmethod
    def _missing_(cls, value):
        aliases = {"run": cls.LEAVE_RUNNING, "leave_running": cls.LEAVE_RUNNING}
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


INSTANCE_TERMINAL_STATES = frozenset(
    {ServerState.RUNNING.value, ServerState.STOPPED.value, ServerState.TERMINATED.value}
)
TERMINATED_STATES = frozenset({ServerState.TERMINATED.value})
STOPPED_STATES = frozenset({ServerState.STOPPED.value, ServerState.TERMINATED.value})
VOLUME_TERMINAL_STATES = frozenset(
    {
        VolumeState.AVAILABLE.value,
        VolumeState.IN_USE.value,
        VolumeState.DELETED.value,
        VolumeState.ERROR.value,
    }
)
VOLUME_DELETED_STATES = frozenset({VolumeState.DELETED.value})
ATTACHMENT_TERMINAL_STATES = frozenset(
    {AttachmentState.ATTACHED.value, AttachmentState.DETACHED.value}
)
SNAPSHOT_TERMINAL_STATES = frozenset(
    {SnapshotState.COMPLETED.value, SnapshotState.ERROR.value}
)
