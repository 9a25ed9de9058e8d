#!/usr/bin/env python3
"""Example usage of ProcessSupervisor from Python code.

Supervises a child process and an in-process asyncio worker. Press Ctrl+C
to stop both and exit.
"""

import asyncio
import logging

from process_supervisor import ProcessSupervisor, ResourceConfig, SupervisorOptions
from process_supervisor.commands import CommandSpec, command_resource
from process_supervisor.launcher import setup_logging


async def ticker():
    while True:
        logging.getLogger("ticker").info("tick")
        await asyncio.sleep(1)


async def stop_task(task: asyncio.Task):
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


async def main():
    supervisor = ProcessSupervisor(SupervisorOptions(
        default_timeout=3.0,
        on_signal=lambda name: print(f"Got {name}, cleaning up"),
    ))

    supervisor.register("sleeper", command_resource(CommandSpec(id="sleeper", command=["sleep", "3600"])))
    supervisor.register("ticker", ResourceConfig(
        start=lambda: asyncio.create_task(ticker()),
        stop=stop_task,
        timeout=1.0,
    ))

    await supervisor.start_all()
    print(f"States: {dict(supervisor.get_all_states())}")

    # Signal handlers call sys.exit() once everything is stopped
    await asyncio.Event().wait()


if __name__ == "__main__":
    setup_logging(use_color=True)
    asyncio.run(main())
