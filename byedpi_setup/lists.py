"""Helpers for loading the candidate-settings and domain lists.

Both inputs are plain text with one entry per line, as produced by the
list-fetching glue (``settings.txt`` and ``links.txt``).
"""

import logging
from pathlib import Path
from typing import Iterable, List

from byedpi_setup.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)


def non_blank(lines: Iterable[str]) -> List[str]:
    """Return stripped entries in input order, dropping blank ones.

    Duplicates are kept: each duplicate setting is trialed on its own.
    """
    return [line.strip() for line in lines if line and line.strip()]


def load_lines(path: Path, label: str) -> List[str]:
    """Read ``path`` and return its non-blank lines.

    Raises ConfigurationError when the file is missing or has no entries.
    """
    if not path.exists():
        raise ConfigurationError(f"{label} file not found: {path}")

    entries = non_blank(path.read_text(encoding="utf-8").splitlines())
    if not entries:
        raise ConfigurationError(f"{label} file is empty: {path}")

    LOGGER.info("Loaded %d %s entries from %s", len(entries), label, path)
    return entries


def load_settings(path: Path) -> List[str]:
    return load_lines(path, "settings")


def load_domains(path: Path) -> List[str]:
    return load_lines(path, "domains")


__all__ = ["load_domains", "load_lines", "load_settings", "non_blank"]
