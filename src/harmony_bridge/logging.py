from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "harmony_bridge"

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, fmt: Optional[str] = None) -> None:
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=level, format=fmt or _DEFAULT_FORMAT)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    configure_logging(level=level)
    return logging.getLogger(name)


def set_package_level(level: int | str) -> None:
    """Set the level for every ``harmony_bridge`` logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def configure_debug_file_logging(
    debug_path: Path,
    *,
    level: int = logging.DEBUG,
    console_level: int | str | None = None,
) -> None:
    """
    Write ``harmony_bridge`` records at ``level`` and above to ``debug_path``.

    The package logger is lowered to ``level`` so the file sees those records.
    When ``console_level`` is given, root console handlers are raised to it so
    the extra records stay out of the terminal.
    """
    root = logging.getLogger()
    debug_path.parent.mkdir(parents=True, exist_ok=True)
    set_package_level(level)
    if console_level is not None:
        if isinstance(console_level, str):
            console_level = logging.getLevelName(console_level.upper())
        for handler in root.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(
                handler, logging.FileHandler
            ):
                handler.setLevel(console_level)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(
            debug_path.resolve()
        ):
            return
    file_handler = logging.FileHandler(debug_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
    root.addHandler(file_handler)
