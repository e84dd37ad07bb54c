"""Trial orchestration."""

from byedpi_setup.jobs.runner import TrialRunner

__all__ = ["TrialRunner"]
