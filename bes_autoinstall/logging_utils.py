from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

DEFAULT_LOG_NAME = "bes-autoinstall.log"


def configure_logging(
    log_path: Optional[str] = None,
    level: int = logging.WARNING,
    also_console: bool = True,
) -> Optional[str]:
    """Configure root logging for a generator run.

    The console handler writes to stderr so a document written to stdout
    stays clean. A file handler is added only when log_path is given; if
    that location is not writable we fall back to a file in the working
    directory.

    Returns the log file actually used, or None for console-only logging.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    if getattr(logger, "_bes_configured", False):
        return getattr(logger, "_bes_log_path", log_path)

    chosen_path: Optional[str] = None
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    if log_path:
        try:
            Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
            file_handler: logging.Handler = logging.FileHandler(log_path)
            chosen_path = log_path
        except OSError:
            fallback = str(Path.cwd() / DEFAULT_LOG_NAME)
            file_handler = logging.FileHandler(fallback)
            chosen_path = fallback
        file_handler.setFormatter(fmt)
        handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_bes_configured", True)
    # Handlers we own, so a caller can detach exactly these.
    setattr(logger, "_bes_handlers", handlers)
    setattr(logger, "_bes_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path


def verbosity_level(verbose: int) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING
