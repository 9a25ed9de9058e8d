"""Exception hierarchy for the supervisor."""


class SupervisorError(Exception):
    """Base class for all supervisor errors."""


class RegistrationError(SupervisorError):
    """Registry lookup or insertion failed."""

    def __init__(self, resource_id: str, message: str):
        super().__init__(message)
        self.resource_id = resource_id


class NotRegisteredError(RegistrationError):
    """No resource is registered under the given id."""

    def __init__(self, resource_id: str):
        super().__init__(resource_id, f'Resource with id "{resource_id}" is not registered')


class AlreadyRegisteredError(RegistrationError):
    """A resource is already registered under the given id."""

    def __init__(self, resource_id: str):
        super().__init__(resource_id, f'Resource with id "{resource_id}" is already registered')


class ResourceError(SupervisorError):
    """Fault raised by (or on behalf of) a resource callback.

    Also used to wrap raised values that are not ``Exception`` instances
    (e.g. ``KeyboardInterrupt``) before they are stored on a record.
    """


class StopTimeoutError(ResourceError, TimeoutError):
    """Stop callback did not complete within the resource timeout."""

    def __init__(self, resource_id: str, timeout: float):
        super().__init__(f'Resource "{resource_id}" failed to stop within {format_duration(timeout)}')
        self.resource_id = resource_id
        self.timeout = timeout


class ConfigError(SupervisorError):
    """Configuration file is missing or malformed."""


def format_duration(seconds: float) -> str:
    """Format a duration in seconds the way log messages show it (``0.1s``, ``5s``)."""
    return f"{seconds:g}s"


def as_error(value: BaseException) -> Exception:
    """Normalize a raised value into an ``Exception``.

    ``Exception`` instances are returned unchanged; anything else is wrapped
    in a ``ResourceError`` carrying the stringified original.
    """
    if isinstance(value, Exception):
        return value
    return ResourceError(str(value) or type(value).__name__)
