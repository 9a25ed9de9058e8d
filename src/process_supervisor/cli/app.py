"""Main Typer app for procsup CLI.

Usage:
    procsup run --config config/supervisor.yaml
    procsup check --config config/supervisor.yaml
"""

import asyncio
import logging
from typing import Annotated

import typer
from rich.console import Console

from process_supervisor.cli.display import display_resources_table
from process_supervisor.config import load_config
from process_supervisor.environment import load_dotenv_if_available
from process_supervisor.errors import ConfigError
from process_supervisor.launcher import CommandLauncher, setup_logging


app = typer.Typer(pretty_exceptions_enable=False, rich_markup_mode=None, no_args_is_help=True)

ConfigOption = Annotated[
    str | None,
    typer.Option("--config", "-c", help="Path to config file (default: config/supervisor.yaml)")
]


@app.command()
def run(
    config: ConfigOption = None,
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable colored logging (use plain text)")] = False,
    no_banner: Annotated[bool, typer.Option("--no-banner", help="Suppress startup banner")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="DEBUG level logging")] = False,
):
    """Start all configured commands and supervise them until SIGINT/SIGTERM."""
    env_loaded, env_file_path = load_dotenv_if_available()

    setup_logging(use_color=not no_color, level=logging.DEBUG if verbose else logging.INFO)
    logger = logging.getLogger("launch")

    if env_loaded and env_file_path:
        logger.info(f"Loaded environment from {env_file_path}")

    try:
        config_file = load_config(config)
    except ConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    if not no_banner:
        logger.info("=" * 60)
        logger.info("procsup - process supervisor")
        if config_file.source:
            logger.info(f"Config: {config_file.source}")
        logger.info("=" * 60)

    launcher = CommandLauncher(config_file)
    try:
        code = asyncio.run(launcher.run())
    except ConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    raise typer.Exit(code)


@app.command()
def check(config: ConfigOption = None):
    """Validate the config file and list the resources it defines."""
    try:
        config_file = load_config(config)
        specs = config_file.command_specs()
        options = config_file.options()
    except ConfigError as e:
        typer.secho(f"Invalid configuration: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    display_resources_table(specs, options, console=Console())


def main():
    """Entry point for procsup CLI."""
    app()


if __name__ == "__main__":
    main()
