"""Config-driven launcher running commands under a ProcessSupervisor.

The launcher registers one command resource per config entry, starts them
all and then waits until the supervisor's termination triggers shut
everything down.
"""

import asyncio
import logging

from rich.logging import RichHandler

from process_supervisor.commands import command_resource
from process_supervisor.config import SupervisorConfigFile
from process_supervisor.supervisor import ProcessSupervisor
from process_supervisor.triggers import AsyncioProcessEnvironment


PLAIN_LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)-5s] [%(name)-15s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(use_color: bool, level: int = logging.INFO):
    """Setup logging based on color preference.

    Args:
        use_color: If True, use Rich colored logging; if False, use plain text
        level: Root logger level
    """
    if not use_color:
        logging.basicConfig(level=level, format=PLAIN_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        return

    logging.basicConfig(
        level=level,
        format='%(message)s',
        handlers=[RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            log_time_format=LOG_DATE_FORMAT
        )]
    )


class LauncherEnvironment(AsyncioProcessEnvironment):
    """AsyncioProcessEnvironment whose exit() ends CommandLauncher.run().

    The exit code is handed back to the caller instead of raising
    SystemExit inside the event loop.
    """

    def __init__(self):
        super().__init__()
        self.exit_code: int | None = None
        self._exited = asyncio.Event()

    def exit(self, code: int):
        self.logger.debug(f"Launcher exit requested with code {code}")
        self.exit_code = code
        self._exited.set()

    async def wait_for_exit(self) -> int:
        await self._exited.wait()
        return self.exit_code


class CommandLauncher:
    """Runs the commands of a config file until a termination signal."""

    def __init__(self, config: SupervisorConfigFile, launcher_id: str = "procsup"):
        self.config = config
        self.launcher_id = launcher_id
        self.logger = logging.getLogger(f"lch|{launcher_id}")
        self.environment = LauncherEnvironment()
        self.supervisor: ProcessSupervisor | None = None

    def initialize(self) -> ProcessSupervisor:
        """Create the supervisor and register every configured command.

        Must be called with the event loop running (signal handlers are
        bound to it).

        Raises:
            ConfigError: If the configuration is invalid
        """
        specs = self.config.command_specs()
        self.supervisor = ProcessSupervisor(self.config.options(), environment=self.environment)

        for spec in specs:
            self.supervisor.register(spec.id, command_resource(spec))
            self.logger.debug(f"Registered command for {spec.id}")

        if not specs:
            self.logger.warning("No resources found in configuration")
        return self.supervisor

    async def run(self) -> int:
        """Start all commands and wait for shutdown.

        Returns:
            Process exit code: 0 if everything stopped cleanly, 1 otherwise
        """
        supervisor = self.initialize()
        try:
            if not await supervisor.start_all():
                self.logger.error("Failed to start resources, shutting down")
                await supervisor.shutdown_all()
                return 1

            self.logger.info("Resources started. Press Ctrl+C to stop.")
            code = await self.environment.wait_for_exit()
            self.logger.info("Launcher shutdown complete")
            return code

        except asyncio.CancelledError:
            self.logger.info("Launcher cancelled, stopping all resources...")
            await supervisor.shutdown_all()
            raise

        finally:
            self.environment.restore()
