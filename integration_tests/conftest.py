"""Fixtures for integration tests that probe through a real local proxy."""

import os

import pytest


@pytest.fixture(scope="session")
def proxy_port() -> int:
    raw = os.environ.get("BYEDPI_TEST_PORT")
    if not raw:
        pytest.skip("BYEDPI_TEST_PORT must point at a running SOCKS5 proxy to run integration tests.")
    return int(raw)
