"""Run-scoped logging and timing lines.

Each selection run writes to ``<LOG_DIR>/<app>-<run id>.log`` plus stderr.
Every record carries the run id so interleaved runs can be told apart.

Timing is reported as one ``event=perf`` line per measured block, either via
``perf_span`` (a ``with`` block) or ``perf`` (a function decorator built on it).
"""

import functools
import logging
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

from byedpi_setup.config import AppConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [run=%(run_id)s] %(message)s"
_PERF_LINE = "event=perf name=%s duration_ms=%.3f success=%s tags=%s"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^0-9A-Za-z_-]")


class _RunIdFilter(logging.Filter):
    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        return True


def generate_run_id() -> str:
    """UTC timestamp such as ``20261018T093000Z``."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def log_path_for(config: AppConfig, run_id: str) -> Path:
    """Log file for ``run_id``; characters unsafe in filenames become ``-``."""
    token = _UNSAFE_FILENAME_CHARS.sub("-", run_id)
    return config.log_directory / f"{config.app_name}-{token}.log"


def _drop_root_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def configure_logging(
    config: AppConfig,
    run_id: Optional[str] = None,
    include_console: bool = True,
    fmt: str = DEFAULT_LOG_FORMAT,
) -> Path:
    """Point the root logger at this run's file (and stderr) and return the file path."""
    run_id = run_id or generate_run_id()
    log_path = log_path_for(config, run_id)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    _drop_root_handlers(root)

    handlers: List[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if include_console:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = logging.Formatter(fmt)
    run_filter = _RunIdFilter(run_id)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(run_filter)
        root.addHandler(handler)

    # Unknown names come back as a "Level X" string.
    level = logging.getLevelName(config.log_level.upper())
    root.setLevel(level if isinstance(level, int) else logging.INFO)
    return log_path


def _format_tags(tags: Optional[Mapping[str, Any]]) -> str:
    return "{" + ", ".join(f"{key}={tags[key]!r}" for key in sorted(tags or {})) + "}"


class perf_span:
    """Time a ``with`` block and log one ``event=perf`` line when it exits.

    ``success`` is false when the block raised; the exception is never
    swallowed.

    Example:
        with perf_span("jobs.trial_probing", tags={"setting": setting}):
            outcomes = dispatch(domains, port, 16)
    """

    def __init__(
        self,
        name: str,
        *,
        tags: Optional[Mapping[str, Any]] = None,
        level: int = logging.INFO,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.name = name
        self.tags = dict(tags or {})
        self.level = level
        self.logger = logger or logging.getLogger(__name__)
        self.duration_ms: Optional[float] = None
        self._started_ns = 0

    def __enter__(self) -> "perf_span":
        self._started_ns = time.monotonic_ns()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.duration_ms = (time.monotonic_ns() - self._started_ns) / 1e6
        self.logger.log(
            self.level,
            _PERF_LINE,
            self.name,
            self.duration_ms,
            "true" if exc_type is None else "false",
            _format_tags(self.tags),
        )
        return False


def perf(
    name: Optional[str] = None,
    *,
    tags: Optional[Mapping[str, Any]] = None,
    level: int = logging.INFO,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator form of ``perf_span``; logs to the wrapped function's module logger.

    The span name defaults to ``<module>.<qualname>``.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        span_name = name or f"{func.__module__}.{func.__qualname__}"
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with perf_span(span_name, tags=tags, level=level, logger=logger):
                return func(*args, **kwargs)

        return wrapper

    return decorator


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "configure_logging",
    "generate_run_id",
    "log_path_for",
    "perf",
    "perf_span",
]
