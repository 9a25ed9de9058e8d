"""Supervisor configuration file.

Example ``config/supervisor.yaml``::

    supervisor:
      default_timeout: 5.0
      handle_signals: [SIGINT, SIGTERM]
      handle_uncaught_errors: true
    resources:
      - id: web
        command: ["python", "-m", "http.server", "${WEB_PORT}"]
        timeout: 3.0
      - id: worker
        command: python worker.py --queue default
        env: {LOG_LEVEL: debug}
        stop_signal: SIGINT
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from process_supervisor.commands import CommandSpec
from process_supervisor.errors import ConfigError
from process_supervisor.resources import DEFAULT_TIMEOUT, SupervisorOptions


DEFAULT_CONFIG_FILE = "config/supervisor.yaml"

_ENV_VAR_PATTERN = r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}'

_logger = logging.getLogger("cfg")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR_NAME} environment variables in config.

    Behavior:
        - If VAR_NAME is set: Replace with environment variable value
        - If VAR_NAME is unset: Keep placeholder and log warning
        - If the entire value is ${VAR} and result is numeric, convert to int/float

    Examples:
        >>> os.environ["PORT"] = "8000"
        >>> expand_env_vars("${PORT}")
        8000
        >>> expand_env_vars("host:${PORT}")
        'host:8000'
    """
    if isinstance(value, str):
        full_match = re.fullmatch(_ENV_VAR_PATTERN, value)
        if full_match:
            env_value = os.getenv(full_match.group(1))
            if env_value is None:
                _logger.warning(f"Environment variable '{value}' not set, keeping placeholder")
                return value
            try:
                return float(env_value) if '.' in env_value else int(env_value)
            except ValueError:
                return env_value

        def replacer(match):
            env_value = os.getenv(match.group(1))
            if env_value is None:
                _logger.warning(f"Environment variable '{match.group(0)}' not set, keeping placeholder")
                return match.group(0)
            return env_value

        return re.sub(_ENV_VAR_PATTERN, replacer, value)

    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]

    else:
        return value


class SupervisorConfigFile(dict):
    """Parsed configuration file (``supervisor`` and ``resources`` sections)."""
    source: Path | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> "SupervisorConfigFile":
        """Load YAML file and expand environment variables.

        Raises:
            ConfigError: If the file cannot be read or is not a YAML mapping
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Failed to load config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a mapping at top level")

        config = cls(expand_env_vars(data))
        config.source = path
        return config

    def options(self, **hooks: Any) -> SupervisorOptions:
        """Build SupervisorOptions from the ``supervisor`` section.

        Args:
            **hooks: ``on_signal``/``on_error`` callbacks (not expressible in YAML)
        """
        section = self.get("supervisor") or {}
        if not isinstance(section, dict):
            raise ConfigError("'supervisor' section must be a mapping")

        handle_signals = section.get("handle_signals", True)
        if isinstance(handle_signals, str):
            handle_signals = [handle_signals]
        elif not isinstance(handle_signals, (bool, list)):
            raise ConfigError("'handle_signals' must be a boolean or a list of signal names")
        if isinstance(handle_signals, list):
            handle_signals = [str(name).upper() for name in handle_signals]

        try:
            default_timeout = float(section.get("default_timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid 'default_timeout': {e}") from e

        return SupervisorOptions(
            default_timeout=default_timeout,
            handle_signals=handle_signals,
            handle_uncaught_errors=bool(section.get("handle_uncaught_errors", True)),
            **hooks
        )

    def command_specs(self) -> list[CommandSpec]:
        """Build CommandSpec for every entry of the ``resources`` section.

        Raises:
            ConfigError: If an entry is malformed or an id is duplicated
        """
        entries = self.get("resources") or []
        if not isinstance(entries, list):
            raise ConfigError("'resources' section must be a list")

        specs = [CommandSpec.from_dict(entry) for entry in entries]

        seen: set[str] = set()
        for spec in specs:
            if spec.id in seen:
                raise ConfigError(f"Duplicate resource id '{spec.id}'")
            seen.add(spec.id)
        return specs


def load_config(config_file: str | Path | None = None) -> SupervisorConfigFile:
    """Load the configuration file.

    An explicitly given file must exist. When no file is given, the default
    ``config/supervisor.yaml`` is used if present, else an empty config.

    Raises:
        ConfigError: If the file is missing (explicit path) or malformed
    """
    if config_file is not None:
        if not Path(config_file).exists():
            raise ConfigError(f"Configuration file not found: {config_file}")
        _logger.info(f"Using config file: {config_file}")
        return SupervisorConfigFile.from_file(config_file)

    if not Path(DEFAULT_CONFIG_FILE).exists():
        _logger.info(f"Default config file not found: {DEFAULT_CONFIG_FILE}")
        _logger.info("Continuing with empty configuration")
        return SupervisorConfigFile()

    _logger.info(f"Using default config file: {DEFAULT_CONFIG_FILE}")
    return SupervisorConfigFile.from_file(DEFAULT_CONFIG_FILE)
