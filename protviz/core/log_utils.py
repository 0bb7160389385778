"""
log_utils.py
------------
Logging setup shared by the pipeline scripts in ``scripts/``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path


LOG_FORMAT = "%(asctime)s  %(levelname)s  %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def setup_logging(
    save_results: bool, log_subdir: str, script_name: str, log_root: Path = Path("logs")
) -> logging.Logger:
    """
    Configure logging:
      - save_results=False → StreamHandler (terminal) only
      - save_results=True  → FileHandler (file) only, no terminal output
    Log path: <log_root>/<log_subdir>/<script_name>_YYYYMMDD_HHMMSS.log

    The handler is attached to the ``protviz`` package logger as well, so
    messages emitted by the library modules end up in the same place.
    """
    logger = logging.getLogger(script_name)
    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if save_results:
        log_dir = Path(log_root) / log_subdir
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = log_dir / f"{script_name}_{timestamp}.log"
        handler: logging.Handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler()

    handler.setLevel(logging.INFO)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    package_logger = logging.getLogger("protviz")
    package_logger.setLevel(logging.INFO)
    package_logger.addHandler(handler)
    return logger
