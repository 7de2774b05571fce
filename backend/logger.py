import logging
import os
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"

_ROOT_NAME = "ballotchain"
_configured = False


def setup_logging(level: str | None = None, log_dir: Path | None = None) -> logging.Logger:
    """Install console (and optional file) handlers on the package logger once."""
    global _configured
    root = logging.getLogger(_ROOT_NAME)
    if _configured:
        return root

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root.setLevel(logging.DEBUG)
    root.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(getattr(logging, level_name, logging.INFO))
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / f"{datetime.now():%Y%m%d_%H%M%S}.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(file_handler)

    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(f"{_ROOT_NAME}.{name}")
