from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_FILE_VAR = "BINANCE_ENV_FILE"


def _project_root() -> Path:
    root = Path(__file__).resolve()
    while root != root.parent and not (root / "pyproject.toml").exists():
        root = root.parent
    return root


def _candidates() -> list[Path]:
    explicit = os.getenv(ENV_FILE_VAR)
    if explicit:
        return [Path(explicit).expanduser()]
    return [Path.cwd() / ".env", _project_root() / ".env"]


@lru_cache(maxsize=1)
def init_env() -> Path | None:
    """
    Load API keys and overrides from a .env file into the process environment.

    ``BINANCE_ENV_FILE`` names the file explicitly; otherwise ./.env and then
    the project root .env are tried. Variables already set are never
    overridden. Returns the loaded file, or None.
    """
    for env_path in _candidates():
        if env_path.is_file():
            load_dotenv(env_path, override=False)
            logger.info("Loaded environment from %s", env_path)
            return env_path
    logger.info("No .env file found; using existing process env only")
    return None
