"""Lifecycle control of the systemd-managed proxy process."""

from byedpi_setup.service.controller import (
    ServiceController,
    ServiceState,
    render_unit,
    run_command,
)

__all__ = ["ServiceController", "ServiceState", "render_unit", "run_command"]
