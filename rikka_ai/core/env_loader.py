"""
``.env`` support for the CLI.

``RIKKA_*`` entries are checked against the settings ``rikka_ai.cli.config``
reads; a malformed value is logged and skipped so the default applies instead
of failing later in the middle of a request. Other entries (proxy variables
such as ``HTTPS_PROXY``, which httpx picks up) are loaded unchanged.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from rikka_ai.core.logger import get_logger

logger = get_logger("rikka.env")

ENV_PREFIX = "RIKKA_"


def _is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def _is_float(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def _is_positive_float(value: str) -> bool:
    return _is_float(value) and float(value) > 0


def _is_log_level(value: str) -> bool:
    return isinstance(logging.getLevelName(value.upper()), int)


# Keys read by rikka_ai.cli.config and rikka_ai.core.logger
KNOWN_KEYS: dict[str, Callable[[str], bool]] = {
    "RIKKA_BASE_URL": _is_url,
    "RIKKA_API_KEY": bool,
    "RIKKA_MODEL": bool,
    "RIKKA_TEMPERATURE": _is_float,
    "RIKKA_TOP_P": _is_float,
    "RIKKA_TIMEOUT": _is_positive_float,
    "RIKKA_OUTPUT_FORMAT": lambda value: value.lower() in ("text", "json"),
    "RIKKA_LOG_LEVEL": _is_log_level,
}


def parse_env_file(path: Path) -> dict[str, str]:
    """Read ``KEY=value`` pairs; ``export`` prefixes and matching quotes are stripped."""
    values: dict[str, str] = {}
    for number, raw_line in enumerate(path.read_text(encoding="utf-8-sig").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            logger.debug("%s:%d: not a KEY=value line", path, number)
            continue

        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key] = value
    return values


def load_project_env(override: bool = False, env_path: Optional[Path] = None) -> dict[str, str]:
    """
    Load ``.env`` (default: in the working directory) into ``os.environ``.

    Variables already set in the environment win unless ``override`` is true.

    Returns:
        The entries that were applied
    """
    path = env_path or Path.cwd() / ".env"
    if not path.is_file():
        return {}

    applied: dict[str, str] = {}
    for key, value in parse_env_file(path).items():
        if key.startswith(ENV_PREFIX):
            check = KNOWN_KEYS.get(key)
            if check is None:
                logger.warning("%s: unknown setting %s ignored", path, key)
                continue
            if not check(value):
                logger.warning("%s: invalid value for %s ignored", path, key)
                continue
        if override or key not in os.environ:
            os.environ[key] = value
            applied[key] = value

    logger.debug("loaded %d entries from %s", len(applied), path)
    return applied
