"""Shared pytest fixtures for the byedpi_setup tests.

Provides fakes for the systemctl seam and the service controller so tests
never touch systemd or the network.
"""

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pytest

from byedpi_setup.config import AppConfig
from byedpi_setup.service import ServiceState


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Application config fixture writing logs and unit files under tmp_path."""
    return AppConfig(
        log_directory=tmp_path / "logs",
        log_level="INFO",
        unit_directory=tmp_path / "systemd",
        setting_file=tmp_path / "byedpi" / "config.conf",
    )


@pytest.fixture(autouse=True)
def reset_root_logging():
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


class FakeRunner:
    """Records systemctl invocations; return codes keyed by action.

    A list value is consumed one code per call, the last one repeating.
    """

    def __init__(self, codes: Optional[Dict[str, Union[int, List[int]]]] = None) -> None:
        self.codes = dict(codes or {})
        self.calls: List[List[str]] = []

    def __call__(self, cmd: Sequence[str]) -> "subprocess.CompletedProcess[str]":
        cmd = list(cmd)
        self.calls.append(cmd)
        action = cmd[1]
        code = self.codes.get(action, 0)
        if isinstance(code, list):
            code = code.pop(0) if len(code) > 1 else code[0]
        return subprocess.CompletedProcess(cmd, code, stdout="", stderr="boom" if code else "")

    def actions(self) -> List[str]:
        return [cmd[1] for cmd in self.calls]


class FakeController:
    """Stand-in for ServiceController tracking the active setting."""

    def __init__(self, failing: Sequence[str] = ()) -> None:
        self.failing = set(failing)
        self.current: Optional[str] = None
        self.started: List[str] = []
        self.stop_calls = 0
        self.installed: List[tuple] = []
        self.state = ServiceState.STOPPED

    def start(self, setting: str, port: int) -> ServiceState:
        self.started.append(setting)
        if setting in self.failing:
            self.state = ServiceState.FAILED
            return self.state
        self.current = setting
        self.state = ServiceState.ACTIVE
        return self.state

    def stop(self) -> None:
        self.stop_calls += 1
        self.current = None
        self.state = ServiceState.STOPPED

    def install(self, setting: str, port: int) -> None:
        self.installed.append((setting, port))
        self.state = ServiceState.ACTIVE


@pytest.fixture
def fake_controller() -> FakeController:
    return FakeController()


@pytest.fixture
def make_runner():
    """Factory for ``FakeRunner`` instances with per-action return codes."""
    return FakeRunner
