"""Resource lifecycle supervisor.

Tracks named long-lived resources (child processes, watchers, servers)
through a small state machine, bounds their shutdown time, stops them in
parallel and hooks that shutdown into termination signals and uncaught
errors.
"""

from .errors import (
    AlreadyRegisteredError,
    ConfigError,
    NotRegisteredError,
    RegistrationError,
    ResourceError,
    StopTimeoutError,
    SupervisorError,
)
from .resources import ManagedResource, ResourceConfig, SupervisorOptions
from .state import ProcessState
from .supervisor import ProcessSupervisor
from .triggers import AsyncioProcessEnvironment, ProcessEnvironment


__version__ = "0.1.0"

__all__ = [
    'ProcessSupervisor',
    'ProcessState',
    'ResourceConfig',
    'ManagedResource',
    'SupervisorOptions',
    'ProcessEnvironment',
    'AsyncioProcessEnvironment',
    'SupervisorError',
    'RegistrationError',
    'NotRegisteredError',
    'AlreadyRegisteredError',
    'ResourceError',
    'StopTimeoutError',
    'ConfigError',
]
