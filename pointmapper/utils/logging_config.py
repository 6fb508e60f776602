"""Unified logging configuration for the CLI, the upload server and tests.

Provides consistent logging across entrypoints:
    - Console and optional file handler (size or time rotation)
    - JSON line output for ingestion
    - Contextual fields (app, image, action) carried by contextvars
    - Warning capture (Python warnings → logging)

Public API:
    setup_logging(**settings.logging, context={"app": "cli"})
    get_logger(name)
    push_context(image="plot.png")
    pop_context(keys=["image"])
    action_context(action="grow_region")

Format examples:
    Human: 2026-10-19T09:12:44.018Z | INFO     | app=cli action=scan | Added 412 points
    JSON: {"t":"2026-10-19T09:12:44.018000+00:00","lvl":"INFO","app":"cli","msg":"..."}

Idempotent: repeated setup_logging() calls replace handlers instead of
stacking them.
"""

import contextlib
import contextvars
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional


_context_var = contextvars.ContextVar('pointmapper_log_context', default={})

_installed: List[logging.Handler] = []

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Formatter that prefixes records with the active context fields.

    Parameters
    ----------
    fmt_mode : str
        "human" or "json"
    use_color : bool
        Colorize the level name (only honoured on a TTY)
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown log format: {fmt_mode}. Use 'human' or 'json'.")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        context = _context_var.get({})
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)

        if self.fmt_mode == "json":
            payload = {
                't': ts.isoformat(),
                'lvl': record.levelname,
                'name': record.name,
                'msg': record.getMessage(),
            }
            payload.update(context)
            if record.exc_info:
                payload['exc'] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{_LEVEL_COLORS.get(record.levelname, '')}{level}{_RESET}"

        parts = [ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', '|', level, '|']
        if context:
            parts.append(' '.join(f"{k}={v}" for k, v in context.items()))
            parts.append('|')
        parts.append(record.getMessage())

        line = ' '.join(parts)
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> List[logging.Handler]:
    """Configure the root logger (idempotent).

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    log_file : str, optional
        Log file path; None disables file logging
    json : bool
        Write JSON lines instead of the human format
    color : bool
        ANSI colors on the console handler
    to_stderr : bool
        Attach a console handler on stderr
    rotate : dict, optional
        {"mode": "size", "max_bytes": 10_000_000, "backup_count": 3} or
        {"mode": "time", "when": "D", "interval": 1, "backup_count": 7}
    capture_warnings : bool
        Route Python warnings into logging
    quiet_libs : list[str], optional
        Loggers forced to WARNING (e.g. ["PIL", "werkzeug"])
    context : dict, optional
        Initial contextual fields (e.g. {"app": "server"})

    Returns
    -------
    list[logging.Handler]
        Handlers attached to the root logger
    """
    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    root.setLevel(getattr(logging, log_level.upper()))

    handlers: List[logging.Handler] = []
    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("json" if json else "human", color))
        handlers.append(console)

    if log_file:
        handlers.append(_create_file_handler(log_file, rotate, json))

    for handler in handlers:
        root.addHandler(handler)

    if context:
        push_context(**context)

    for lib in quiet_libs or ():
        logging.getLogger(lib).setLevel(logging.WARNING)

    if capture_warnings:
        logging.captureWarnings(True)

    _installed.extend(handlers)
    return handlers


def _create_file_handler(
    log_file: str,
    rotate: Optional[Dict[str, Any]],
    json_format: bool,
) -> logging.Handler:
    """Create a file handler, rotating when ``rotate`` is given."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if not rotate:
        handler: logging.Handler = logging.FileHandler(log_path, encoding='utf-8')
    elif rotate.get('mode', 'size') == 'size':
        handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=rotate.get('max_bytes', 10_000_000),
            backupCount=rotate.get('backup_count', 3),
            encoding='utf-8',
        )
    elif rotate['mode'] == 'time':
        handler = logging.handlers.TimedRotatingFileHandler(
            log_path,
            when=rotate.get('when', 'D'),
            interval=rotate.get('interval', 1),
            backupCount=rotate.get('backup_count', 7),
            encoding='utf-8',
        )
    else:
        raise ValueError(f"Unknown rotation mode: {rotate['mode']}. Use 'size' or 'time'.")

    handler.setFormatter(ContextFormatter("json" if json_format else "human", use_color=False))
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (typically ``__name__``)."""
    return logging.getLogger(name)


def push_context(**kwargs) -> None:
    """Add contextual fields to every subsequent log record.

    Examples
    --------
    >>> push_context(app="cli", image="plot.png")
    >>> logger.info("Loaded")  # → "... | app=cli image=plot.png | Loaded"
    """
    _context_var.set({**_context_var.get({}), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove the given contextual fields, or all of them when ``keys`` is None."""
    if keys is None:
        _context_var.set({})
        return
    current = dict(_context_var.get({}))
    for key in keys:
        current.pop(key, None)
    _context_var.set(current)


@contextlib.contextmanager
def action_context(**kwargs) -> Iterator[None]:
    """Scope contextual fields to one user action.

    The previous context is restored on exit, even when the action raises.
    """
    token = _context_var.set({**_context_var.get({}), **kwargs})
    try:
        yield
    finally:
        _context_var.reset(token)


def install_excepthook() -> None:
    """Log uncaught exceptions (except Ctrl+C) before the interpreter exits."""
    def log_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = log_exception
