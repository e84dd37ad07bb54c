"""Trial runner: one candidate setting at a time through the shared proxy."""

import logging
from typing import Callable, List, Optional, Sequence

from byedpi_setup.lists import non_blank
from byedpi_setup.logging_utils import perf, perf_span
from byedpi_setup.network import ProbeOutcome, dispatch, probe_domain
from byedpi_setup.network.probe import DEFAULT_MAX_TIME
from byedpi_setup.ranking import Trial
from byedpi_setup.service import ServiceController, ServiceState

LOGGER = logging.getLogger(__name__)

SEPARATOR = "=" * 48


class TrialRunner:
    """Bring the proxy up per setting, probe all domains, and tear it down.

    Trials never overlap: the proxy process and its port are shared by every
    setting, so ``run_all`` walks the candidate list strictly in order.
    """

    def __init__(
        self,
        controller: ServiceController,
        port: int,
        *,
        concurrency_limit: int = 16,
        probe: Callable[[str, int], ProbeOutcome] = probe_domain,
        probe_deadline: float = DEFAULT_MAX_TIME,
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        if probe_deadline <= 0:
            raise ValueError("probe_deadline must be positive")
        self._controller = controller
        self._port = port
        self._concurrency_limit = concurrency_limit
        self._probe = probe
        self._probe_deadline = probe_deadline

    @property
    def port(self) -> int:
        return self._port

    def run_trial(self, setting: str, domains: Sequence[str]) -> Optional[Trial]:
        """Trial ``setting`` against ``domains``.

        Returns None when the service never became active; the caller moves on
        to the next candidate. The service is stopped on every path.
        """
        try:
            LOGGER.info("Starting service...")
            state = self._controller.start(setting, self._port)
            if state is not ServiceState.ACTIVE:
                LOGGER.error("Service did not start for setting %s, skipping", setting)
                return None

            LOGGER.info("Probing domains in parallel...")
            with perf_span("jobs.trial_probing", tags={"setting": setting}, logger=LOGGER):
                outcomes = dispatch(
                    domains,
                    self._port,
                    self._concurrency_limit,
                    probe=self._probe,
                    deadline=self._probe_deadline,
                )
            return Trial.from_outcomes(setting, outcomes)
        finally:
            LOGGER.info("Stopping service...")
            self._controller.stop()

    @perf("jobs.run_all", tags={"component": "jobs"})
    def run_all(self, settings: Sequence[str], domains: Sequence[str]) -> List[Trial]:
        candidates = non_blank(settings)
        targets = non_blank(domains)
        LOGGER.info("=== Trials started on port %s ===", self._port)
        LOGGER.info("Loaded settings: %d", len(candidates))
        LOGGER.info("Loaded domains: %d", len(targets))

        # A leftover instance from an earlier run would hold the port.
        self._controller.stop()

        trials: List[Trial] = []
        for number, setting in enumerate(candidates, start=1):
            LOGGER.info(SEPARATOR)
            LOGGER.info("Testing setting [%d/%d]: %s", number, len(candidates), setting)

            trial = self.run_trial(setting, targets)
            if trial is None:
                continue
            trials.append(trial)
            _log_trial(trial, number, len(candidates))

        LOGGER.info(
            "Trials finished: %d of %d settings produced results",
            len(trials),
            len(candidates),
        )
        return trials


def _log_trial(trial: Trial, number: int, total: int) -> None:
    LOGGER.info("Results for setting [%d/%d]:", number, total)
    LOGGER.info(
        "- Succeeded: %d of %d (%d%%)",
        trial.success_count,
        trial.total_count,
        trial.success_rate,
    )
    if trial.failed_count:
        LOGGER.warning("- Failed: %d", trial.failed_count)
    for outcome in trial.failed_outcomes:
        LOGGER.info("  failed https://%s (code: %s)", outcome.domain, outcome.code)


__all__ = ["TrialRunner"]
