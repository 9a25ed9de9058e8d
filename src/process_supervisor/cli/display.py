"""Display formatting for procsup using Rich library."""

import shlex

from rich.console import Console
from rich.table import Table
from rich.text import Text

from process_supervisor.commands import CommandSpec
from process_supervisor.resources import SupervisorOptions


def display_resources_table(
    specs: list[CommandSpec],
    options: SupervisorOptions,
    console: Console | None = None
):
    """Print configured resources with their effective stop settings."""
    console = console or Console()

    if not specs:
        console.print("No resources configured", style="yellow")
        return

    table = Table(title="Configured resources")
    table.add_column("ID", style="bold")
    table.add_column("Command")
    table.add_column("Timeout", justify="right")
    table.add_column("Stop signal")

    for spec in specs:
        timeout = spec.timeout if spec.timeout is not None else options.default_timeout
        timeout_text = Text(f"{timeout:g}s", style="" if spec.timeout is not None else "dim")
        table.add_row(spec.id, shlex.join(spec.command), timeout_text, spec.stop_signal)

    console.print(table)

    signals = ", ".join(options.signals) or "disabled"
    errors = "enabled" if options.handle_uncaught_errors else "disabled"
    console.print(f"Signal handling: {signals}", style="dim")
    console.print(f"Uncaught error handling: {errors}", style="dim")
