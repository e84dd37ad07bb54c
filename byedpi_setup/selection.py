"""Operator prompts: listening port and ranked-entry choice."""

import enum
import logging
import sys
from typing import Callable, Optional, Sequence, TextIO

from colorama import Fore, Style

from byedpi_setup.config import DEFAULT_PORT
from byedpi_setup.errors import SelectionError
from byedpi_setup.ranking import RankedEntry

LOGGER = logging.getLogger(__name__)

MIN_PORT = 1024
MAX_PORT = 65535
HIGH_THRESHOLD = 80
MEDIUM_THRESHOLD = 50

InputFn = Callable[[str], str]


class Severity(enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_COLORS = {
    Severity.HIGH: Fore.GREEN,
    Severity.MEDIUM: Fore.YELLOW,
    Severity.LOW: Fore.RED,
}


def _is_number(raw: str) -> bool:
    return raw.isascii() and raw.isdigit()


def severity_for(rate: int) -> Severity:
    if rate >= HIGH_THRESHOLD:
        return Severity.HIGH
    if rate >= MEDIUM_THRESHOLD:
        return Severity.MEDIUM
    return Severity.LOW


def resolve_port(text: Optional[str]) -> int:
    """Parse the operator's port answer, falling back to ``DEFAULT_PORT``.

    Blank input silently selects the default; anything non-numeric or outside
    ``[1024, 65535]`` is logged and replaced by the default.
    """
    raw = (text or "").strip()
    if not raw:
        return DEFAULT_PORT
    if not _is_number(raw) or not MIN_PORT <= int(raw) <= MAX_PORT:
        LOGGER.error("Invalid port %r. Using default port: %d", raw, DEFAULT_PORT)
        return DEFAULT_PORT
    return int(raw)


def prompt_port(input_fn: InputFn = input) -> int:
    return resolve_port(input_fn(f"Enter port for ByeDPI (default {DEFAULT_PORT}): "))


def format_entry(entry: RankedEntry, *, color: bool = True) -> str:
    trial = entry.trial
    line = (
        f"{entry.index}) {trial.setting} "
        f"(success: {trial.success_rate}%, {trial.success_count}/{trial.total_count}, "
        f"failed: {trial.failed_count})"
    )
    if not color:
        return line
    return f"{_COLORS[severity_for(trial.success_rate)]}{line}{Style.RESET_ALL}"


def render_entries(
    entries: Sequence[RankedEntry],
    stream: Optional[TextIO] = None,
    *,
    color: bool = True,
) -> None:
    out = stream or sys.stdout
    out.write(f"Top {len(entries)} configurations:\n")
    for entry in entries:
        out.write(format_entry(entry, color=color) + "\n")
    out.flush()


def parse_selection(text: Optional[str], count: int) -> int:
    """Validate an index answer against ``count`` ranked entries.

    Raises SelectionError for non-numeric or out-of-range input.
    """
    raw = (text or "").strip()
    if not _is_number(raw):
        raise SelectionError(f"Invalid selection {raw!r}: expected a number")
    index = int(raw)
    if index >= count:
        raise SelectionError(f"Invalid selection {index}: choose 0..{count - 1}")
    return index


def present(
    entries: Sequence[RankedEntry],
    *,
    input_fn: InputFn = input,
    stream: Optional[TextIO] = None,
    color: bool = True,
) -> int:
    """Show ``entries`` and return the operator's validated index."""
    render_entries(entries, stream, color=color)
    return parse_selection(input_fn("Choose configuration number: "), len(entries))


__all__ = [
    "Severity",
    "format_entry",
    "parse_selection",
    "present",
    "prompt_port",
    "render_entries",
    "resolve_port",
    "severity_for",
]
