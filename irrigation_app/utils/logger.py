"""
Centralized logging configuration
Per-session log directory with rotating app/debug/error files and function tracing
"""

import os
import sys
import logging
import logging.handlers
import functools
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional
import asyncio

# Log root can be moved with IRRIGATION_LOG_DIR (Reflex hot reload watches the project dir)
LOG_DIR = Path(os.getenv("IRRIGATION_LOG_DIR", "/tmp/irrigation_logs"))

SESSION_ID = datetime.now().strftime('%Y%m%d_%H%M%S')

DETAILED_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-30s | %(funcName)-20s | Line:%(lineno)-5d | %(message)s'
SIMPLE_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'
DEBUG_FORMAT = '%(asctime)s | %(name)s.%(funcName)s:%(lineno)d | %(message)s'

MB = 1024 * 1024

# file name -> (level, format, max bytes, backups); max bytes 0 means no rotation
LOG_FILES = {
    "app.log": (logging.INFO, DETAILED_FORMAT, 10 * MB, 5),
    "debug.log": (logging.DEBUG, DEBUG_FORMAT, 50 * MB, 2),
    "errors.log": (logging.ERROR, DETAILED_FORMAT, 0, 0),
}


def session_dir() -> Path:
    """Directory holding this process's log files"""
    path = LOG_DIR / f"session_{SESSION_ID}"
    path.mkdir(exist_ok=True, parents=True)
    return path


def _file_handler(path: Path, level: int, fmt: str, max_bytes: int, backups: int) -> logging.Handler:
    if max_bytes:
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backups, encoding='utf-8'
        )
    else:
        handler = logging.FileHandler(path, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S'))
    if level == logging.DEBUG:
        # debug.log keeps only DEBUG records, the rest go to app.log
        handler.addFilter(lambda record: record.levelno == logging.DEBUG)
    return handler


def setup_logging(level=logging.DEBUG, log_to_files: bool = True):
    """Install console and per-session file handlers on the root logger.

    Existing root handlers are replaced, so calling this twice (Reflex
    re-imports the app module on reload) does not duplicate output.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(SIMPLE_FORMAT, datefmt='%H:%M:%S'))
    root.addHandler(console)

    if not log_to_files:
        return root

    directory = session_dir()
    for name, (file_level, fmt, max_bytes, backups) in LOG_FILES.items():
        root.addHandler(_file_handler(directory / name, file_level, fmt, max_bytes, backups))

    root.info("=" * 80)
    root.info(f"Irrigation dashboard session {SESSION_ID} logging to {directory}")
    root.info(f"Python {sys.version.split()[0]} on {sys.platform}")
    root.info("=" * 80)
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _trace_enter(logger: logging.Logger, label: str, args, kwargs) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug(f"{label} >>>")
    if args or kwargs:
        logger.debug(f"  Args: {_safe_repr(args)}, Kwargs: {_safe_repr(kwargs)}")


def _trace_error(logger: logging.Logger, label: str, exc: Exception) -> None:
    logger.error(f"{label} failed: {exc}")
    logger.debug(f"  Traceback:\n{traceback.format_exc()}")


def log_function(func: Callable) -> Callable:
    """Trace entry, exit and errors of a sync or async function at DEBUG level"""
    logger = logging.getLogger(func.__module__)
    name = f"{func.__module__}.{func.__qualname__}"

    if asyncio.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            _trace_enter(logger, f"ASYNC ENTER {name}", args, kwargs)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _trace_error(logger, name, e)
                raise
            logger.debug(f"ASYNC EXIT <<< {name} -> {_safe_repr(result)}")
            return result

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        _trace_enter(logger, f"ENTER {name}", args, kwargs)
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _trace_error(logger, name, e)
            raise
        logger.debug(f"EXIT <<< {name}")
        return result

    return wrapper


def _safe_repr(obj: Any, max_len: int = 100) -> str:
    try:
        text = repr(obj)
    except Exception:
        return f"<{type(obj).__name__} object>"
    return text if len(text) <= max_len else text[:max_len] + "..."


class LogOperation:
    """Times a block and logs START/END lines, marking failures"""

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None):
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger(__name__)
        self.started: Optional[datetime] = None
        self.duration = 0.0

    def __enter__(self):
        self.started = datetime.now()
        self.logger.info(f"START OPERATION: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = (datetime.now() - self.started).total_seconds()
        if exc_type is None:
            self.logger.info(f"END OPERATION: {self.operation_name} [SUCCESS in {self.duration:.2f}s]")
        else:
            self.logger.error(
                f"END OPERATION: {self.operation_name} [FAILED in {self.duration:.2f}s] {exc_type.__name__}: {exc_val}"
            )
        return False
