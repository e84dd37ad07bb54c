"""Error taxonomy for the configuration selection run.

Fatal conditions carry an ``exit_code`` that the CLI returns to the shell.
Per-probe and per-trial failures are recorded as data and never raised past
the trial runner.
"""


class ByeDPISetupError(Exception):
    """Base class for all errors raised by byedpi_setup."""

    exit_code = 1


class ConfigurationError(ByeDPISetupError):
    """Settings or domain input is missing/empty, or a config value is invalid."""

    exit_code = 2


class NoViableConfiguration(ByeDPISetupError):
    """Every trial was skipped or every trial scored zero."""

    exit_code = 3


class SelectionError(ByeDPISetupError):
    """Operator picked a non-numeric or out-of-range entry."""

    exit_code = 4


class ServiceStartError(ByeDPISetupError):
    """The proxy service could not be brought to an active state."""

    exit_code = 5


class RunInterrupted(ByeDPISetupError):
    """Raised from the SIGTERM handler so cleanup runs like on Ctrl+C."""

    exit_code = 130


__all__ = [
    "ByeDPISetupError",
    "ConfigurationError",
    "NoViableConfiguration",
    "SelectionError",
    "ServiceStartError",
    "RunInterrupted",
]
