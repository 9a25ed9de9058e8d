"""Data model for supervised resources."""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from process_supervisor.state import ProcessState


T = TypeVar("T")

DEFAULT_TIMEOUT = 5.0
DEFAULT_SIGNALS: tuple[str, ...] = ("SIGINT", "SIGTERM")


@dataclass
class ResourceConfig(Generic[T]):
    """How to start and stop one resource.

    Attributes:
        start: Zero-argument callable creating the resource. May return the
            instance directly or an awaitable producing it.
            Pass the factory, not its result: ``start=lambda: spawn()``.
        stop: Callable receiving the running instance and cleaning it up.
            May return None or an awaitable.
        timeout: Seconds to wait for stop() before giving up
            (None = supervisor default)
    """
    start: Callable[[], T | Awaitable[T]]
    stop: Callable[[T], Awaitable[None] | None]
    timeout: float | None = None


@dataclass
class ManagedResource(Generic[T]):
    """Supervisor bookkeeping entry for one resource."""
    id: str
    config: ResourceConfig[T]  # timeout already resolved
    state: ProcessState = ProcessState.IDLE
    instance: T | None = None
    error: Exception | None = None

    @property
    def timeout(self) -> float:
        """Stop timeout in seconds."""
        return self.config.timeout


@dataclass
class SupervisorOptions:
    """Options for ProcessSupervisor.

    Attributes:
        default_timeout: Stop timeout in seconds for resources without their own
        handle_signals: True for SIGINT+SIGTERM, False to disable, or a list
            of signal names (e.g. ``["SIGINT", "SIGTERM", "SIGUSR2"]``)
        handle_uncaught_errors: Shut down on uncaught errors and unhandled
            task failures
        on_signal: Called with the signal name before signal-triggered shutdown
        on_error: Called with the error before error-triggered shutdown
    """
    default_timeout: float = DEFAULT_TIMEOUT
    handle_signals: bool | Sequence[str] = True
    handle_uncaught_errors: bool = True
    on_signal: Callable[[str], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None

    @property
    def signals(self) -> tuple[str, ...]:
        """Signal names to subscribe to (empty when disabled)."""
        if self.handle_signals is True:
            return DEFAULT_SIGNALS
        if not self.handle_signals:
            return ()
        return tuple(self.handle_signals)
