import logging
import os
import sys

_ROOT_LOGGER = "rikka"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``rikka`` namespace."""
    if name != _ROOT_LOGGER and not name.startswith(_ROOT_LOGGER + "."):
        name = f"{_ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """Install a single stderr handler on the ``rikka`` logger.

    Level priority: argument > RIKKA_LOG_LEVEL env > WARNING.
    Calling it again only updates the level.
    """
    if level is None:
        level = os.getenv("RIKKA_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(level)
    if not any(getattr(h, "_rikka_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._rikka_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root
