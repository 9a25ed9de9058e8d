"""Lifecycle states for supervised resources."""

from enum import Enum


class ProcessState(Enum):
    """Lifecycle state of a managed resource."""
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @property
    def can_start(self) -> bool:
        """Check if start() may run from this state."""
        return self in (ProcessState.IDLE, ProcessState.STOPPED, ProcessState.FAILED)

    @property
    def can_stop(self) -> bool:
        """Check if stop() invokes the stop callback from this state."""
        return self in (ProcessState.RUNNING, ProcessState.FAILED)
