"""Concurrent fan-out of domain probes for a single trial.

Each probe gets a wall-clock deadline measured from the moment its worker
picks it up. Socket timeouts alone do not bound a probe: a peer that trickles
bytes keeps every read under the read timeout forever. A probe still running
at its deadline is recorded as a transport failure and left to finish in the
background; it ends once the trial stops the proxy.
"""

import logging
import math
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Sequence, Tuple

from byedpi_setup.lists import non_blank
from byedpi_setup.logging_utils import perf
from byedpi_setup.network.probe import (
    DEFAULT_MAX_TIME,
    TRANSPORT_FAILURE,
    ProbeOutcome,
    probe_domain,
)

LOGGER = logging.getLogger(__name__)

ProbeFn = Callable[[str, int], ProbeOutcome]

POLL_INTERVAL_SECONDS = 0.05


@perf("network.dispatch", tags={"component": "network"})
def dispatch(
    domains: Sequence[str],
    proxy_port: int,
    concurrency_limit: int,
    *,
    probe: ProbeFn = probe_domain,
    deadline: float = DEFAULT_MAX_TIME,
) -> List[ProbeOutcome]:
    """Probe every non-blank domain with at most ``concurrency_limit`` in flight.

    Outcomes are returned in completion order. Each domain yields exactly one
    outcome; a worker that raises or overruns ``deadline`` is recorded as a
    transport failure.

    Args:
        domains: Hostnames to probe; blank entries are skipped.
        proxy_port: Local SOCKS5 port of the proxy under trial.
        concurrency_limit: Worker pool size, independent of the batch size.
        probe: Callable ``(domain, port) -> ProbeOutcome``.
        deadline: Seconds a single probe may run once started.
    """
    if concurrency_limit < 1:
        raise ValueError("concurrency_limit must be >= 1")
    if deadline <= 0:
        raise ValueError("deadline must be positive")

    targets = non_blank(domains)
    if not targets:
        return []

    workers = min(concurrency_limit, len(targets))
    # Overrun probes keep their worker busy, so queued ones may never start.
    batch_deadline = time.monotonic() + deadline * (math.ceil(len(targets) / workers) + 1)
    started: Dict[int, float] = {}

    def timed(index: int, domain: str) -> ProbeOutcome:
        started[index] = time.monotonic()
        return probe(domain, proxy_port)

    outcomes: List[ProbeOutcome] = []
    overrun = 0
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe")
    try:
        futures: Dict[Future, Tuple[int, str]] = {
            executor.submit(timed, index, domain): (index, domain)
            for index, domain in enumerate(targets)
        }
        pending = set(futures)
        while pending:
            done, pending = wait(pending, timeout=POLL_INTERVAL_SECONDS, return_when=FIRST_COMPLETED)
            for fut in done:
                outcomes.append(_collect(fut, futures[fut][1]))

            now = time.monotonic()
            expired = [
                fut
                for fut in pending
                if now >= batch_deadline
                or (futures[fut][0] in started and now - started[futures[fut][0]] >= deadline)
            ]
            for fut in expired:
                fut.cancel()
                domain = futures[fut][1]
                LOGGER.warning("Probe for %s exceeded %.1fs deadline", domain, deadline)
                outcomes.append(
                    ProbeOutcome.from_code(domain, TRANSPORT_FAILURE, error="deadline exceeded")
                )
                pending.discard(fut)
                overrun += 1
    except BaseException:
        # Interrupted: drop queued probes; in-flight ones end when the service stops.
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=not overrun, cancel_futures=True)

    LOGGER.debug(
        "Dispatched %d probes on port %s (limit=%d, overrun=%d)",
        len(targets),
        proxy_port,
        concurrency_limit,
        overrun,
    )
    return outcomes


def _collect(fut: Future, domain: str) -> ProbeOutcome:
    try:
        return fut.result()
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Probe worker for %s raised: %s", domain, exc)
        return ProbeOutcome.from_code(domain, TRANSPORT_FAILURE, error=str(exc))


__all__ = ["ProbeFn", "dispatch"]
