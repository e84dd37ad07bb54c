"""Single-domain reachability probes through the local SOCKS5 proxy.

A probe issues exactly one HTTPS GET to ``https://<domain>`` via
``socks5h://127.0.0.1:<port>`` (DNS is resolved by the proxy) and classifies
the status line. The body is never read.

Notes:
- Redirects are not followed: 301/302 already count as reachable.
- Transport failures (DNS, connect, TLS, timeout) map to ``TRANSPORT_FAILURE``.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

import requests

LOGGER = logging.getLogger(__name__)

PROXY_HOST = "127.0.0.1"
TRANSPORT_FAILURE = 0
ACCEPTED_STATUS_CODES: FrozenSet[int] = frozenset({200, 404, 400, 405, 403, 302, 301})
DEFAULT_CONNECT_TIMEOUT = 2.0
DEFAULT_MAX_TIME = 3.0
USER_AGENT = "curl/8.5.0"


class ProbeStatus(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of probing one domain through the proxy.

    Attributes:
        domain: The probed hostname.
        status: SUCCESS when ``code`` is an accepted status code.
        code: HTTP status, or ``TRANSPORT_FAILURE`` when no response arrived.
        error: Transport error text, if any.
    """

    domain: str
    status: ProbeStatus
    code: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ProbeStatus.SUCCESS

    @classmethod
    def from_code(cls, domain: str, code: int, error: Optional[str] = None) -> "ProbeOutcome":
        return cls(domain=domain, status=classify_status(code), code=code, error=error)


def classify_status(code: int) -> ProbeStatus:
    """Map an HTTP status code to a probe status. Pure."""
    return ProbeStatus.SUCCESS if code in ACCEPTED_STATUS_CODES else ProbeStatus.FAILURE


def target_url(domain: str) -> str:
    return f"https://{domain}"


def socks_proxies(port: int) -> Dict[str, str]:
    """Return a Requests ``proxies`` mapping for the local SOCKS5 listener."""
    url = f"socks5h://{PROXY_HOST}:{port}"
    return {"http": url, "https": url}


def probe_domain(
    domain: str,
    proxy_port: int,
    *,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    max_time: float = DEFAULT_MAX_TIME,
) -> ProbeOutcome:
    """Probe ``https://<domain>`` once through the proxy on ``proxy_port``."""
    url = target_url(domain)
    try:
        resp = requests.get(
            url,
            timeout=(connect_timeout, max_time),
            proxies=socks_proxies(proxy_port),
            headers={"User-Agent": USER_AGENT},
            allow_redirects=False,
            stream=True,
        )
    except (requests.RequestException, OSError) as exc:
        LOGGER.warning("  FAILED (%s: %03d) %s", url, TRANSPORT_FAILURE, exc)
        return ProbeOutcome.from_code(domain, TRANSPORT_FAILURE, error=str(exc))

    try:
        outcome = ProbeOutcome.from_code(domain, resp.status_code)
    finally:
        resp.close()

    if outcome.ok:
        LOGGER.info("  OK (%s: %s)", url, outcome.code)
    else:
        LOGGER.warning("  FAILED (%s: %s)", url, outcome.code)
    return outcome


__all__ = [
    "ACCEPTED_STATUS_CODES",
    "ProbeOutcome",
    "ProbeStatus",
    "TRANSPORT_FAILURE",
    "classify_status",
    "probe_domain",
    "socks_proxies",
    "target_url",
]
