"""Logging setup for CandleVault.

Modules obtain their logger with ``logging.getLogger(__name__)``; this
module only wires handlers onto the root logger for CLI runs.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Configure root logging with a stdout handler and an optional file.

    Args:
        level: Logging level, either numeric or a name such as ``"DEBUG"``.
        log_file: Optional path of a log file.  Parent directories are
            created when missing.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    handlers: List[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers.append(console_handler)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    # force=True so repeated CLI invocations in one process (tests) rewire cleanly
    logging.basicConfig(level=level, handlers=handlers, force=True)
