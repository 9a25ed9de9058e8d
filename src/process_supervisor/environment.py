"""Environment variable loading from .env files."""

import logging
from pathlib import Path

from dotenv import load_dotenv


def load_dotenv_if_available(env_file: str | Path = ".env") -> tuple[bool, Path | None]:
    """Load ``env_file`` if it exists.

    Existing environment variables take precedence (override=False), so
    values exported in the shell always win over the file.

    Returns:
        Tuple of (loaded, absolute path of the loaded file or None)
    """
    path = Path(env_file)
    if not path.exists():
        logging.getLogger("env").debug(f"No {path} file found")
        return False, None

    load_dotenv(path, override=False)
    return True, path.absolute()
