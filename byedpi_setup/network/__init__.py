"""Network utilities for probing domains through the local proxy.

Exports:
- ``probe_domain``: one bounded-timeout HTTPS check through SOCKS5.
- ``classify_status``: pure status-code to ``ProbeStatus`` mapping.
- ``dispatch``: bounded concurrent fan-out over a domain list.
"""

from byedpi_setup.network.dispatcher import dispatch
from byedpi_setup.network.probe import (
    ACCEPTED_STATUS_CODES,
    TRANSPORT_FAILURE,
    ProbeOutcome,
    ProbeStatus,
    classify_status,
    probe_domain,
)

__all__ = [
    "ACCEPTED_STATUS_CODES",
    "TRANSPORT_FAILURE",
    "ProbeOutcome",
    "ProbeStatus",
    "classify_status",
    "dispatch",
    "probe_domain",
]
