"""Logging and run records for cytometree.

A build can mirror the package log to a file, and every export leaves two
records behind: a YAML document describing the run, and one JSON line
appended to a history file shared by all runs written to the same
directory.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """``build.log`` -> ``build_20251209_080530.log``."""
    log_path = Path(log_path)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return log_path.with_name(f"{log_path.stem}_{stamp}{log_path.suffix or '.log'}")


def get_logger(
    name: str,
    log_path: PathLike,
    level: int = logging.INFO,
    timestamped: bool = True,
) -> Tuple[logging.Logger, Path]:
    """Attach a file handler to the ``name`` logger.

    Console handlers installed by the CLI are left in place, so records go
    both to the terminal and to the file. A previous file handler on the
    same logger is replaced.

    Parameters
    ----------
    name : str
        Logger name; "cytometree" captures every module of the package
    log_path : PathLike
        Base path of the log file
    level : int
        Logging level
    timestamped : bool
        Add a timestamp to the file name; if False, an existing file is
        truncated

    Returns
    -------
    Tuple[logging.Logger, Path]
        The logger and the file it writes to
    """
    path = get_timestamped_log_path(log_path) if timestamped else Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    for old in [h for h in logger.handlers if isinstance(h, logging.FileHandler)]:
        logger.removeHandler(old)
        old.close()

    handler = logging.FileHandler(path, mode="a" if timestamped else "w", encoding="utf-8")
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(handler)
    return logger, path


def write_run_record(path: PathLike, record: Dict[str, Any]) -> Path:
    """Write ``record`` as a single YAML document, replacing the file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(record, handle, sort_keys=False)
    return path


def append_run_history(path: PathLike, record: Dict[str, Any]) -> Path:
    """Append ``record`` as one JSON line to a run history file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, default=str))
        handle.write("\n")
    return path


def read_run_history(path: PathLike) -> List[Dict[str, Any]]:
    """Records of a run history file, oldest first."""
    path = Path(path)
    if not path.exists():
        return []
    with path.open(encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]
