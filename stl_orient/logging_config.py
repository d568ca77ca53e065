"""
Logging setup for stl_orient.

Two output formats share one set of record fields:
- console: short, optionally colored lines for interactive runs
- JSON lines: one object per record for log collectors and batch runs

Analysis code logs numpy values (normals, bounding boxes, scores); both
formatters turn them into plain numbers and lists.

Usage:
    from stl_orient.logging_config import setup_logging, log_timing

    setup_logging(level=logging.DEBUG, json_file="analysis.jsonl")

    with log_timing(logger, "Scoring", n_candidates=7):
        ...
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar, Union

import numpy as np

F = TypeVar('F', bound=Callable[..., Any])

PACKAGE_LOGGER = "stl_orient"

# Attributes set by LogRecord itself; everything else arrived through
# `extra=` or a LogContext
_RESERVED_KEYS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {'message', 'asctime', 'taskName'}

_LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}
_RESET = '\033[0m'


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached to a record via `extra={}` or LogContext."""
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_KEYS}


def _plain(value: Any) -> Any:
    """numpy scalars and arrays as Python numbers and lists."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp, level, logger, message; `location` for DEBUG and for
    WARNING and above; `exception` when exc_info is set; then every extra
    field. Values json cannot encode are written as str().
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno <= logging.DEBUG or record.levelno >= logging.WARNING:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in extra_fields(record).items():
                value = _plain(value)
                try:
                    json.dumps(value)
                except (TypeError, ValueError):
                    value = str(value)
                entry[key] = value

        return json.dumps(entry, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """`[HH:MM:SS] LEVEL name: message [key=value, ...]`

    Logger names lose the `stl_orient.` prefix. Floats are shown with three
    significant digits, long sequences as their length.
    """

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    @staticmethod
    def _format_value(value: Any) -> str:
        value = _plain(value)
        if isinstance(value, float):
            return f"{value:.3g}"
        if isinstance(value, (list, tuple)) and len(value) > 3:
            return f"[...{len(value)} items]"
        return str(value)

    def _level(self, record: logging.LogRecord) -> str:
        text = f"{record.levelname:8}"
        color = _LEVEL_COLORS.get(record.levelno)
        if self.use_colors and color:
            return f"{color}{text}{_RESET}"
        return text

    def format(self, record: logging.LogRecord) -> str:
        name = record.name
        if name.startswith(PACKAGE_LOGGER + "."):
            name = name[len(PACKAGE_LOGGER) + 1:]

        line = "[{}] {} {}: {}".format(
            datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
            self._level(record),
            name,
            record.getMessage(),
        )

        if self.show_extra:
            pairs = [f"{k}={self._format_value(v)}" for k, v in extra_fields(record).items()]
            if pairs:
                line += " [" + ", ".join(pairs) + "]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _handlers(
    level: int,
    json_file: Optional[Union[str, Path]],
    console: bool,
    use_colors: bool,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(ConsoleFormatter(use_colors=use_colors))
        handlers.append(stream)
    if json_file:
        jsonl = logging.FileHandler(Path(json_file), encoding='utf-8')
        jsonl.setFormatter(JSONFormatter())
        handlers.append(jsonl)
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
    root_logger: bool = False,
) -> logging.Logger:
    """Install console and/or JSON-lines handlers.

    Handlers from a previous call are closed and replaced, so the CLI and
    the batch runner can call this more than once per process.

    Args:
        level: minimum level for the logger and its handlers
        json_file: path of a JSON-lines log file (optional)
        console: log to stderr
        use_colors: ANSI colors on the console
        root_logger: configure the root logger instead of `stl_orient`

    Returns:
        The configured logger
    """
    logger = logging.getLogger("" if root_logger else PACKAGE_LOGGER)
    logger.setLevel(level)

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in _handlers(level, json_file, console, use_colors):
        logger.addHandler(handler)
    _attach_context_filter(logger)

    if not root_logger:
        logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **extra: Any
) -> Iterator[Dict[str, Any]]:
    """Log the start, end and duration of a block.

    The yielded dict is merged into the completion record, so callers can
    attach results:

        with log_timing(logger, "Scoring", n_candidates=7) as info:
            results = score_orientations(mesh, candidates, features)
            info['best_score'] = results[0].score

    An exception is logged at ERROR with the elapsed time and re-raised.
    """
    info: Dict[str, Any] = {}
    fields = {"operation": operation, **extra}
    started = time.perf_counter()

    logger.log(level, "Starting: %s", operation, extra={"event": "start", **fields})
    try:
        yield info
    except Exception as exc:
        elapsed = time.perf_counter() - started
        logger.error(
            "Failed: %s (%.3fs) - %s", operation, elapsed, exc,
            extra={"event": "error", "elapsed_seconds": elapsed, "error": str(exc), **fields},
        )
        raise

    info['elapsed_seconds'] = time.perf_counter() - started
    logger.log(
        level, "Completed: %s (%.3fs)", operation, info['elapsed_seconds'],
        extra={"event": "complete", **fields, **info},
    )


def timed(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    operation: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator form of log_timing.

    The logger defaults to the decorated function's module logger and the
    operation name to the function name.
    """
    def decorator(func: F) -> F:
        name = operation or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with log_timing(logger or logging.getLogger(func.__module__), name, level):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


class _ContextFieldsFilter(logging.Filter):
    """Copies the fields of the active LogContext onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.__dict__.update(_context_fields.get())
        return True


_context_fields: ContextVar[Dict[str, Any]] = ContextVar('stl_orient_log_fields', default={})
_context_stack: ContextVar[Optional['LogContext']] = ContextVar('stl_orient_log_context', default=None)
_fields_filter = _ContextFieldsFilter()


def _attach_context_filter(logger: logging.Logger) -> None:
    # Logger filters never see records propagated from child loggers;
    # handler filters do
    for handler in logger.handlers:
        if _fields_filter not in handler.filters:
            handler.addFilter(_fields_filter)


class LogContext:
    """Attach fields to every stl_orient record emitted inside a `with` block.

    run_analysis() uses it to tag records with the model name. Contexts
    nest; inner fields win. The fields live in a ContextVar, so each thread
    sees only the contexts it entered itself; pass work to a pool through
    `contextvars.copy_context().run` to carry them along.

        with LogContext(model="bracket.stl"):
            analyze_orientation(mesh)
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._tokens: Optional[Tuple[Token, Token]] = None

    def __enter__(self) -> 'LogContext':
        _attach_context_filter(logging.getLogger(PACKAGE_LOGGER))
        self._tokens = (
            _context_fields.set({**_context_fields.get(), **self.fields}),
            _context_stack.set(self),
        )
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._tokens is not None:
            fields_token, stack_token = self._tokens
            _context_stack.reset(stack_token)
            _context_fields.reset(fields_token)
            self._tokens = None

    @classmethod
    def current(cls) -> Optional['LogContext']:
        """Innermost context entered in the calling thread or task."""
        return _context_stack.get()


def configure_default_logging(verbose: bool = False) -> logging.Logger:
    """Console logging at DEBUG (verbose) or INFO."""
    return setup_logging(level=logging.DEBUG if verbose else logging.INFO)
