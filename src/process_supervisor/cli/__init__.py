"""procsup - command-line interface for the process supervisor."""

from process_supervisor.cli.app import app, main


__all__ = ["app", "main"]
