"""Trial records and their ranking."""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from byedpi_setup.errors import NoViableConfiguration
from byedpi_setup.network.probe import ProbeOutcome

LOGGER = logging.getLogger(__name__)

DEFAULT_TOP_K = 10


def success_rate(success_count: int, total_count: int) -> int:
    """Integer percentage, truncated; 0 when nothing was probed."""
    if total_count <= 0:
        return 0
    return success_count * 100 // total_count


@dataclass(frozen=True)
class Trial:
    """Aggregated probe results for one candidate setting."""

    setting: str
    outcomes: Tuple[ProbeOutcome, ...]
    success_count: int
    total_count: int
    success_rate: int

    @classmethod
    def from_outcomes(cls, setting: str, outcomes: Iterable[ProbeOutcome]) -> "Trial":
        collected = tuple(outcomes)
        successes = sum(1 for outcome in collected if outcome.ok)
        total = len(collected)
        return cls(
            setting=setting,
            outcomes=collected,
            success_count=successes,
            total_count=total,
            success_rate=success_rate(successes, total),
        )

    @property
    def failed_count(self) -> int:
        return self.total_count - self.success_count

    @property
    def failed_outcomes(self) -> List[ProbeOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def failed_domains(self) -> List[str]:
        return [outcome.domain for outcome in self.failed_outcomes]

    def sort_key(self) -> Tuple[int, int]:
        return (-self.success_rate, len(self.setting))


@dataclass(frozen=True)
class RankedEntry:
    """A trial and its position in the ranked top-K list."""

    index: int
    trial: Trial

    @property
    def setting(self) -> str:
        return self.trial.setting

    @property
    def success_rate(self) -> int:
        return self.trial.success_rate


def rank(trials: Sequence[Trial], top_k: int = DEFAULT_TOP_K) -> List[RankedEntry]:
    """Order trials by success rate (desc) then setting length (asc).

    Ties keep their trial order. Raises NoViableConfiguration when there is
    nothing to choose from: no trials at all, or every trial scored 0.
    """
    if top_k < 1:
        raise ValueError("top_k must be >= 1")
    if not trials:
        raise NoViableConfiguration("No configuration could be trialed")
    if all(trial.success_rate == 0 for trial in trials):
        raise NoViableConfiguration(
            f"None of the {len(trials)} trialed configurations reached any domain"
        )

    ordered = sorted(trials, key=Trial.sort_key)[:top_k]
    LOGGER.info("Ranked %d trials, keeping top %d", len(trials), len(ordered))
    return [RankedEntry(index=i, trial=trial) for i, trial in enumerate(ordered)]


__all__ = ["DEFAULT_TOP_K", "RankedEntry", "Trial", "rank", "success_rate"]
