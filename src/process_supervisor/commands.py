"""Child-process resources for the supervisor.

``command_resource()`` turns a CommandSpec into a ResourceConfig whose start
spawns the command and whose stop signals it and waits for it to exit.
Output of the child (stdout and stderr merged) is relayed line by line to
the ``cmd|<id>`` logger.
"""

import asyncio
import logging
import os
import shlex
import signal
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from process_supervisor.errors import ConfigError
from process_supervisor.resources import ResourceConfig


RELAY_DRAIN_TIMEOUT = 1.0


@dataclass
class CommandSpec:
    """Configuration of one supervised command.

    Attributes:
        id: Resource id (unique within the supervisor)
        command: Program and arguments
        cwd: Working directory (None = inherit)
        env: Extra environment variables, merged over the current environment
        timeout: Stop timeout in seconds (None = supervisor default)
        stop_signal: Signal name sent on stop
        kill_after: Send SIGKILL if the process is still alive this many
            seconds after ``stop_signal`` (None = never)
    """
    id: str
    command: list[str]
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    stop_signal: str = "SIGTERM"
    kill_after: float | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "CommandSpec":
        """Create from a ``resources`` entry of the config file.

        Raises:
            ConfigError: If the entry is malformed
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Resource entry must be a mapping, got: {data!r}")

        resource_id = data.get("id")
        if not isinstance(resource_id, str) or not resource_id:
            raise ConfigError(f"Resource entry without valid 'id': {data!r}")

        command = data.get("command")
        if isinstance(command, str):
            command = shlex.split(command)
        if not isinstance(command, list) or not command:
            raise ConfigError(f"Resource '{resource_id}': 'command' must be a non-empty string or list")
        command = [str(arg) for arg in command]

        env = data.get("env") or {}
        if not isinstance(env, dict):
            raise ConfigError(f"Resource '{resource_id}': 'env' must be a mapping")

        stop_signal = str(data.get("stop_signal", "SIGTERM")).upper()
        if not isinstance(getattr(signal, stop_signal, None), signal.Signals):
            raise ConfigError(f"Resource '{resource_id}': unknown stop_signal '{stop_signal}'")

        try:
            timeout = _optional_float(data.get("timeout"))
            kill_after = _optional_float(data.get("kill_after"))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Resource '{resource_id}': {e}") from e

        cwd = data.get("cwd")
        return cls(
            id=resource_id,
            command=command,
            cwd=str(cwd) if cwd is not None else None,
            env={str(k): str(v) for k, v in env.items()},
            timeout=timeout,
            stop_signal=stop_signal,
            kill_after=kill_after,
        )


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


@dataclass
class ProcessInfo:
    """Information about a running command."""
    process: asyncio.subprocess.Process
    start_time: datetime
    args: list[str]
    relay_task: asyncio.Task | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode


async def _relay_output(stream: asyncio.StreamReader, logger: logging.Logger):
    """Relay child output to the log until EOF."""
    try:
        while True:
            line = await stream.readline()
            if not line:
                break
            logger.info(line.decode(errors="replace").rstrip())
    except Exception as e:
        logger.error(f"Output relay error: {e}")


def command_resource(spec: CommandSpec) -> ResourceConfig[ProcessInfo]:
    """Build a ResourceConfig that runs ``spec.command`` as a child process."""
    logger = logging.getLogger(f"cmd|{spec.id}")

    async def start() -> ProcessInfo:
        env = {**os.environ, **spec.env} if spec.env else None
        logger.info(f"Starting: {shlex.join(spec.command)}")
        process = await asyncio.create_subprocess_exec(
            *spec.command,
            cwd=spec.cwd,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        info = ProcessInfo(process=process, start_time=datetime.now(), args=list(spec.command))
        info.relay_task = asyncio.create_task(_relay_output(process.stdout, logger))
        logger.info(f"Started (PID: {process.pid})")
        return info

    async def stop(info: ProcessInfo | None):
        if info is None:
            # Start never produced a process
            return

        proc = info.process
        if proc.returncode is None:
            try:
                proc.send_signal(getattr(signal, spec.stop_signal))
            except ProcessLookupError:
                pass

            if spec.kill_after is None:
                await proc.wait()
            else:
                try:
                    await asyncio.wait_for(proc.wait(), spec.kill_after)
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Force killing PID {proc.pid} - did not exit {spec.kill_after}s after {spec.stop_signal}"
                    )
                    proc.kill()
                    await proc.wait()

        if info.relay_task and not info.relay_task.done():
            # Pipe may stay open if the child left descendants behind
            await asyncio.wait({info.relay_task}, timeout=RELAY_DRAIN_TIMEOUT)
            info.relay_task.cancel()

        logger.info(f"Exited (exit code: {proc.returncode})")

    return ResourceConfig(start=start, stop=stop, timeout=spec.timeout)
