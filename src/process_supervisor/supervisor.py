"""Resource lifecycle supervisor.

ProcessSupervisor tracks named resources through

    IDLE -> STARTING -> RUNNING -> STOPPING -> STOPPED
                    \\-> FAILED            \\-> FAILED

bounds every stop with a timeout, stops everything in parallel on shutdown
and wires that shutdown to termination signals and uncaught errors.

Resources are opaque to the supervisor: it only calls the start/stop
callbacks given at registration. Restarting failed resources is up to the
caller.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from functools import partial
from types import MappingProxyType
from typing import Any

from process_supervisor.errors import (
    AlreadyRegisteredError,
    NotRegisteredError,
    StopTimeoutError,
    as_error,
)
from process_supervisor.resources import (
    DEFAULT_SIGNALS,
    ManagedResource,
    ResourceConfig,
    SupervisorOptions,
)
from process_supervisor.state import ProcessState
from process_supervisor.triggers import AsyncioProcessEnvironment, ProcessEnvironment


async def _resolve(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


class ProcessSupervisor:
    """Supervises the lifecycle of multiple managed resources.

    Example:
        supervisor = ProcessSupervisor(SupervisorOptions(default_timeout=3.0))
        supervisor.register("web", ResourceConfig(
            start=lambda: asyncio.create_subprocess_exec("python", "-m", "http.server"),
            stop=lambda proc: proc.terminate(),
        ))
        await supervisor.start("web")
        ...
        await supervisor.shutdown_all()
    """

    def __init__(
        self,
        options: SupervisorOptions | None = None,
        environment: ProcessEnvironment | None = None
    ):
        self.options = options or SupervisorOptions()
        self.environment = environment or AsyncioProcessEnvironment()
        self.default_timeout = self.options.default_timeout
        self.logger = logging.getLogger("sup")
        self._resources: dict[str, ManagedResource[Any]] = {}
        self._signals_installed = False
        self._errors_installed = False
        self._shutting_down = False

        if self.options.signals:
            self.handle_signals(self.options.signals)
        if self.options.handle_uncaught_errors:
            self.handle_uncaught_errors()

    # Registry

    def register(self, resource_id: str, config: ResourceConfig[Any]):
        """Register a resource. Nothing is started until start() is called.

        Raises:
            AlreadyRegisteredError: If ``resource_id`` is taken
        """
        if resource_id in self._resources:
            raise AlreadyRegisteredError(resource_id)

        timeout = config.timeout if config.timeout is not None else self.default_timeout
        self._resources[resource_id] = ManagedResource(
            id=resource_id,
            config=replace(config, timeout=timeout),
        )
        self.logger.debug(f'Registered resource "{resource_id}" (stop timeout {timeout}s)')

    async def unregister(self, resource_id: str):
        """Remove a resource, stopping it first if it is running.

        The record is removed even if the stop fails; the stop error is
        then re-raised.

        Raises:
            NotRegisteredError: If ``resource_id`` is unknown
        """
        resource = self._get_resource(resource_id)
        try:
            if resource.state is ProcessState.RUNNING:
                await self.stop(resource_id)
        finally:
            if self._resources.get(resource_id) is resource:
                del self._resources[resource_id]
                self.logger.debug(f'Unregistered resource "{resource_id}"')

    def get_instance(self, resource_id: str) -> Any | None:
        """Instance returned by the last successful start (None if never started or unknown)."""
        resource = self._resources.get(resource_id)
        return resource.instance if resource else None

    def get_state(self, resource_id: str) -> ProcessState | None:
        """Current state, or None if ``resource_id`` is unknown."""
        resource = self._resources.get(resource_id)
        return resource.state if resource else None

    def get_error(self, resource_id: str) -> Exception | None:
        """Error captured on the last transition into FAILED."""
        resource = self._resources.get(resource_id)
        return resource.error if resource else None

    def get_all_states(self) -> Mapping[str, ProcessState]:
        """Read-only snapshot of every resource's state."""
        return MappingProxyType({rid: res.state for rid, res in self._resources.items()})

    def has(self, resource_id: str) -> bool:
        return resource_id in self._resources

    @property
    def size(self) -> int:
        """Number of registered resources."""
        return len(self._resources)

    def __len__(self) -> int:
        return self.size

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._resources

    # Lifecycle

    async def start(self, resource_id: str):
        """Start a resource.

        Calling start while the resource is starting, running or stopping
        only logs a warning. If the start callback raises, the resource
        becomes FAILED and the original exception is re-raised.

        Raises:
            NotRegisteredError: If ``resource_id`` is unknown
        """
        resource = self._get_resource(resource_id)

        if not resource.state.can_start:
            if resource.state is ProcessState.STOPPING:
                self.logger.warning(f'Resource "{resource_id}" is still stopping, cannot start')
            else:
                self.logger.warning(f'Resource "{resource_id}" is already {resource.state}')
            return

        resource.state = ProcessState.STARTING
        try:
            instance = await _resolve(resource.config.start())
        except BaseException as e:
            resource.state = ProcessState.FAILED
            resource.error = as_error(e)
            self.logger.debug(f'Resource "{resource_id}" failed to start: {resource.error}')
            raise

        resource.instance = instance
        resource.state = ProcessState.RUNNING
        self.logger.info(f'Resource "{resource_id}" started')

    async def stop(self, resource_id: str):
        """Stop a resource, waiting at most its timeout.

        Stopping a never-started (IDLE) resource does nothing. Stopping while
        the resource is starting, stopping or already stopped only logs a
        warning. If the stop callback raises or times out, the resource
        becomes FAILED and the error is re-raised.

        Raises:
            NotRegisteredError: If ``resource_id`` is unknown
            StopTimeoutError: If the stop callback did not finish in time
        """
        resource = self._get_resource(resource_id)

        if not resource.state.can_stop:
            if resource.state is ProcessState.STARTING:
                self.logger.warning(f'Resource "{resource_id}" is still starting, cannot stop')
            elif resource.state is not ProcessState.IDLE:
                self.logger.warning(f'Resource "{resource_id}" is already {resource.state}')
            return

        resource.state = ProcessState.STOPPING
        try:
            await self._stop_with_timeout(resource)
        except BaseException as e:
            resource.state = ProcessState.FAILED
            resource.error = as_error(e)
            self.logger.debug(f'Resource "{resource_id}" failed to stop: {resource.error}')
            raise

        resource.state = ProcessState.STOPPED
        self.logger.info(f'Resource "{resource_id}" stopped')

    async def _stop_with_timeout(self, resource: ManagedResource[Any]):
        """Race the stop callback against a timer; the timer never outlives the race."""
        result = resource.config.stop(resource.instance)
        if not inspect.isawaitable(result):
            return

        stop_task = asyncio.ensure_future(result)
        timer = asyncio.ensure_future(asyncio.sleep(resource.timeout))
        try:
            await asyncio.wait({stop_task, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            timer.cancel()
            if not stop_task.done():
                # Not cancelled: the callback keeps running, we just stop waiting.
                stop_task.add_done_callback(partial(self._late_stop_done, resource.id))

        if stop_task.done():
            stop_task.result()
            return

        raise StopTimeoutError(resource.id, resource.timeout)

    def _late_stop_done(self, resource_id: str, task: asyncio.Future):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.debug(f'Stop callback of "{resource_id}" failed after timeout: {error}')
        else:
            self.logger.debug(f'Stop callback of "{resource_id}" completed after timeout')

    async def start_all(self) -> bool:
        """Start all registered resources one by one, in registration order.

        Start failures are logged, not raised.

        Returns:
            True if every resource started successfully, False otherwise
        """
        success = True
        for resource_id in list(self._resources):
            self.logger.info(f"Starting resource: {resource_id}")
            try:
                await self.start(resource_id)
            except Exception as e:
                self.logger.error(f'Failed to start resource "{resource_id}": {e}')
                success = False
        return success

    async def shutdown_all(self) -> bool:
        """Stop all registered resources in parallel.

        Waits for every stop to finish; a failing resource never prevents
        the others from stopping. Failures are logged, not raised.

        Returns:
            True if any resource failed to stop, False otherwise
        """
        resource_ids = list(self._resources)
        if not resource_ids:
            return False

        results = await asyncio.gather(
            *[self.stop(rid) for rid in resource_ids],
            return_exceptions=True
        )

        errors = False
        for resource_id, result in zip(resource_ids, results):
            if isinstance(result, BaseException):
                self.logger.error(f'Failed to stop resource "{resource_id}": {result}')
                errors = True
        return errors

    # Termination triggers

    @property
    def shutting_down(self) -> bool:
        """True once a termination signal started the shutdown."""
        return self._shutting_down

    def handle_signals(self, signals: Sequence[str] | None = None):
        """Shut down all resources and exit when a termination signal arrives.

        Args:
            signals: Signal names to handle (default: SIGINT and SIGTERM)
        """
        if self._signals_installed:
            self.logger.warning("Signal handlers already registered")
            return
        self._signals_installed = True

        for name in DEFAULT_SIGNALS if signals is None else signals:
            self.environment.subscribe_signal(name, self._on_signal)

    def handle_uncaught_errors(self):
        """Shut down all resources and exit with 1 on uncaught errors."""
        if self._errors_installed:
            self.logger.warning("Error handlers already registered")
            return
        self._errors_installed = True

        self.environment.subscribe_uncaught(self._on_uncaught_error)
        self.environment.subscribe_unhandled(self._on_unhandled_error)

    async def _on_signal(self, signal_name: str):
        if self._shutting_down:
            return
        self._shutting_down = True

        await self._run_hook("on_signal", self.options.on_signal, signal_name)
        self.logger.info(f"Received {signal_name}, shutting down gracefully...")
        errors = await self.shutdown_all()
        self.environment.exit(1 if errors else 0)

    async def _on_uncaught_error(self, error: BaseException):
        await self._on_error("Unexpected error", error)

    async def _on_unhandled_error(self, error: BaseException):
        await self._on_error("Unhandled rejection", error)

    async def _on_error(self, label: str, error: BaseException):
        self.logger.error(f"{label}: {error}", exc_info=error)
        await self._run_hook("on_error", self.options.on_error, error)
        await self.shutdown_all()
        self.environment.exit(1)

    async def _run_hook(self, name: str, hook: Callable[[Any], Any] | None, arg: Any):
        if hook is None:
            return
        try:
            await _resolve(hook(arg))
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            self.logger.error(f"{name} hook failed: {e}")

    def _get_resource(self, resource_id: str) -> ManagedResource[Any]:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise NotRegisteredError(resource_id)
        return resource
