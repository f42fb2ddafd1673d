"""Logging setup shared by the CLI and the HTTP server."""

import logging
import sys
import time
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(log_dir: Path, verbose: int = 1) -> tuple[logging.Logger, Path, str]:
    """
    Configure the 'cardloop' logger to write to stderr and a per-run log file.

    Verbosity: 0 = warnings, 1 = info, 2+ = debug.

    Returns:
        (logger, log_file, run_id)
    """
    run_id = time.strftime("%Y%m%d-%H%M%S")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"cardloop_{run_id}.log"

    level = logging.WARNING if verbose <= 0 else logging.INFO if verbose == 1 else logging.DEBUG

    logger = logging.getLogger("cardloop")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
    logger.addHandler(console)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug(f"Logging to {log_file} (run {run_id})")
    return logger, log_file, run_id
