from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = "/var/log/steam-gamescope-installer.log"
DEFAULT_UNINSTALL_LOG_PATH = "/var/log/steam-gamescope-uninstaller.log"

_LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class ConsoleFormatter(logging.Formatter):
    """Short ``[LEVEL] message`` lines, coloured when the stream is a terminal."""

    COLORS = {
        logging.ERROR: "\033[0;31m",
        logging.WARNING: "\033[1;33m",
        logging.INFO: "\033[0;32m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True) -> None:
        super().__init__(fmt="%(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        label = "WARN" if record.levelno == logging.WARNING else record.levelname
        color = self.COLORS.get(record.levelno) if self.use_color else None
        if color:
            return f"{color}[{label}]{self.RESET} {message}"
        return f"[{label}] {message}"


def level_from_env(default: int = logging.INFO) -> int:
    """Resolve ``LOG_LEVEL`` (DEBUG, INFO, WARN, ERROR) to a logging level."""

    name = os.environ.get("LOG_LEVEL", "").strip().upper()
    return _LEVEL_NAMES.get(name, default)


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: Optional[int] = None,
    also_console: bool = True,
) -> str:
    """Configure logging.

    Every decision is recorded to ``log_path`` with a timestamp; the console
    gets the same messages without timestamps.

    Notes:
    - Writing to /var/log needs root. If it fails we fall back to a log file
      in the working directory and keep reporting the requested path.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level if level is not None else level_from_env())

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_gamescope_configured", False):
        return getattr(logger, "_gamescope_log_path", log_path)

    chosen_path = log_path
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler: logging.Handler
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
    except OSError:
        fallback = str(Path.cwd() / Path(log_path).name)
        file_handler = logging.FileHandler(fallback)
        chosen_path = fallback
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        stream = getattr(console, "stream", None)
        console.setFormatter(ConsoleFormatter(use_color=bool(stream and stream.isatty())))
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_gamescope_configured", True)
    setattr(logger, "_gamescope_log_path", chosen_path)

    logging.getLogger(__name__).debug(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
