"""systemd control of the single ByeDPI proxy process.

``ServiceController`` owns the unit file and the process lifecycle for the
whole run. Trials take it sequentially: ``start`` with a candidate setting,
probe, then ``stop``. The final choice is persisted with ``install``.
"""

import enum
import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from byedpi_setup.config import (
    DEFAULT_BINARY,
    DEFAULT_SERVICE,
    DEFAULT_SETTING_FILE,
    DEFAULT_UNIT_DIR,
    AppConfig,
)
from byedpi_setup.errors import ServiceStartError

LOGGER = logging.getLogger(__name__)

LISTEN_IP = "127.0.0.1"
READY_POLL_ATTEMPTS = 10
READY_POLL_INTERVAL_SECONDS = 1.0
COMMAND_TIMEOUT_SECONDS = 30.0

Runner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]

UNIT_TEMPLATE = """[Unit]
Description=ByeDPI Proxy Service
After=network.target

[Service]
WorkingDirectory={working_directory}
ExecStart={binary} --ip {ip} --port {port} {setting}
Restart=on-failure
RestartSec=5s

[Install]
WantedBy=multi-user.target
"""


class ServiceState(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"
    FAILED = "failed"


def render_unit(binary: str, port: int, setting: str, working_directory: Optional[str] = None) -> str:
    """Return the systemd unit text launching ``binary`` with ``setting``."""
    return UNIT_TEMPLATE.format(
        working_directory=working_directory or str(Path(binary).parent),
        binary=binary,
        ip=LISTEN_IP,
        port=port,
        setting=setting.strip(),
    )


def run_command(cmd: Sequence[str]) -> "subprocess.CompletedProcess[str]":
    """Run ``cmd`` capturing text output; never raises on non-zero exit."""
    return subprocess.run(
        list(cmd),
        capture_output=True,
        text=True,
        timeout=COMMAND_TIMEOUT_SECONDS,
        check=False,
    )


class ServiceController:
    """Start, health-poll, stop, and install the systemd-managed proxy."""

    def __init__(
        self,
        *,
        binary: str = DEFAULT_BINARY,
        service_name: str = DEFAULT_SERVICE,
        unit_directory: Path = Path(DEFAULT_UNIT_DIR),
        setting_file: Path = Path(DEFAULT_SETTING_FILE),
        runner: Runner = run_command,
        sleep: Callable[[float], None] = time.sleep,
        poll_attempts: int = READY_POLL_ATTEMPTS,
        poll_interval: float = READY_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._binary = binary
        self._service_name = service_name
        self._unit_path = Path(unit_directory) / f"{service_name}.service"
        self._setting_file = Path(setting_file)
        self._runner = runner
        self._sleep = sleep
        self._poll_attempts = max(1, int(poll_attempts))
        self._poll_interval = poll_interval
        self._state = ServiceState.STOPPED

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs) -> "ServiceController":
        return cls(
            binary=config.binary_path,
            service_name=config.service_name,
            unit_directory=config.unit_directory,
            setting_file=config.setting_file,
            **kwargs,
        )

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def unit_path(self) -> Path:
        return self._unit_path

    def _systemctl(self, *args: str) -> "subprocess.CompletedProcess[str]":
        cmd: List[str] = ["systemctl", *args]
        try:
            return self._runner(cmd)
        except (OSError, subprocess.SubprocessError) as exc:
            raise ServiceStartError(f"{' '.join(cmd)} could not run: {exc}") from exc

    def _check(self, *args: str) -> None:
        result = self._systemctl(*args)
        if result.returncode != 0:
            detail = (result.stderr or "").strip()[:200]
            raise ServiceStartError(f"systemctl {' '.join(args)} failed: {detail}")

    def _write_unit(self, setting: str, port: int) -> None:
        try:
            self._unit_path.parent.mkdir(parents=True, exist_ok=True)
            self._unit_path.write_text(render_unit(self._binary, port, setting), encoding="utf-8")
        except OSError as exc:
            raise ServiceStartError(f"Failed to write unit {self._unit_path}: {exc}") from exc

    def is_active(self) -> bool:
        try:
            result = self._systemctl("is-active", "--quiet", self._service_name)
        except ServiceStartError as exc:
            LOGGER.debug("Active check failed: %s", exc)
            return False
        return result.returncode == 0

    def _wait_active(self) -> bool:
        for attempt in range(1, self._poll_attempts + 1):
            if self.is_active():
                LOGGER.info("Service %s active after %d check(s)", self._service_name, attempt)
                return True
            if attempt < self._poll_attempts:
                self._sleep(self._poll_interval)
        return False

    def start(self, setting: str, port: int) -> ServiceState:
        """Launch the proxy with ``setting`` on ``port`` and wait until active.

        Returns ``ServiceState.ACTIVE`` or ``ServiceState.FAILED``; never raises
        for start problems.
        """
        self._state = ServiceState.STARTING
        try:
            self._write_unit(setting, port)
            self._check("daemon-reload")
            self._check("restart", self._service_name)
        except ServiceStartError as exc:
            LOGGER.error("Failed to start %s: %s", self._service_name, exc)
            self._state = ServiceState.FAILED
            return self._state

        LOGGER.info("Waiting for %s to become active...", self._service_name)
        if self._wait_active():
            self._state = ServiceState.ACTIVE
        else:
            LOGGER.error(
                "Service %s not active after %d checks",
                self._service_name,
                self._poll_attempts,
            )
            self._state = ServiceState.FAILED
        return self._state

    def stop(self) -> None:
        """Stop the proxy. Idempotent; failures are logged and ignored."""
        try:
            result = self._systemctl("stop", self._service_name)
        except ServiceStartError as exc:
            LOGGER.warning("Could not stop %s: %s", self._service_name, exc)
        else:
            if result.returncode != 0:
                # "not loaded" is the normal case before the first trial.
                LOGGER.debug(
                    "systemctl stop %s exited %s: %s",
                    self._service_name,
                    result.returncode,
                    (result.stderr or "").strip(),
                )
        self._state = ServiceState.STOPPED

    def install(self, setting: str, port: int) -> None:
        """Persist ``setting`` and leave the service enabled and running.

        Raises ServiceStartError if any step fails.
        """
        if not setting or not setting.strip():
            raise ServiceStartError("Refusing to install an empty setting")

        try:
            self._setting_file.parent.mkdir(parents=True, exist_ok=True)
            self._setting_file.write_text(setting.strip() + "\n", encoding="utf-8")
        except OSError as exc:
            raise ServiceStartError(f"Failed to write {self._setting_file}: {exc}") from exc

        self._write_unit(setting, port)
        self._check("daemon-reload")
        self._check("enable", self._service_name)
        self._check("restart", self._service_name)
        if not self._wait_active():
            self._state = ServiceState.FAILED
            raise ServiceStartError(f"Service {self._service_name} did not become active")
        self._state = ServiceState.ACTIVE
        LOGGER.info("Installed %s with setting: %s", self._service_name, setting)


__all__ = ["ServiceController", "ServiceState", "render_unit", "run_command"]
