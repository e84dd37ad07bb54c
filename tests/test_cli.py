import signal

import pytest

from byedpi_setup.cli import USAGE_EXIT_CODE, main
from byedpi_setup.errors import RunInterrupted
from byedpi_setup.network import ProbeOutcome

CODES = {
    "--a": {"x.com": 200, "y.com": 500},
    "--bb": {"x.com": 200, "y.com": 200},
    "--dead": {"x.com": 0, "y.com": 0},
}


@pytest.fixture
def inputs(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("PROBE_CONCURRENCY", raising=False)
    monkeypatch.delenv("TOP_K", raising=False)
    settings = tmp_path / "settings.txt"
    domains = tmp_path / "links.txt"
    settings.write_text("--a\n\n--bb\n", encoding="utf-8")
    domains.write_text("x.com\ny.com\n\n", encoding="utf-8")
    return settings, domains


def _probe_for(controller):
    def probe(domain, port):
        return ProbeOutcome.from_code(domain, CODES[controller.current][domain])

    return probe


def _argv(settings, domains, *extra):
    return ["--settings", str(settings), "--domains", str(domains), *extra]


def test_main_selects_and_installs_best(inputs, fake_controller):
    settings, domains = inputs
    answers = iter(["1080", "0"])

    code = main(
        _argv(settings, domains),
        input_fn=lambda _prompt: next(answers),
        controller=fake_controller,
        probe=_probe_for(fake_controller),
    )

    assert code == 0
    assert fake_controller.installed == [("--bb", 1080)]


def test_main_no_install_prints_choice(inputs, fake_controller, capsys):
    settings, domains = inputs

    code = main(
        _argv(settings, domains, "--port", "abc", "--select", "1", "--no-install"),
        controller=fake_controller,
        probe=_probe_for(fake_controller),
    )

    assert code == 0
    assert fake_controller.installed == []
    out = capsys.readouterr().out
    assert "Top 2 configurations:" in out
    assert out.strip().endswith("--a")


def test_main_invalid_selection_exits_4(inputs, fake_controller):
    settings, domains = inputs

    code = main(
        _argv(settings, domains, "--port", "8080", "--select", "2"),
        controller=fake_controller,
        probe=_probe_for(fake_controller),
    )

    assert code == 4
    assert fake_controller.installed == []


def test_main_no_viable_configuration_exits_3(inputs, fake_controller):
    settings, domains = inputs
    settings.write_text("--dead\n", encoding="utf-8")

    code = main(
        _argv(settings, domains, "--port", "8080"),
        controller=fake_controller,
        probe=_probe_for(fake_controller),
    )

    assert code == 3


def test_main_empty_domains_exits_2(inputs, fake_controller):
    settings, domains = inputs
    domains.write_text("\n\n", encoding="utf-8")

    code = main(_argv(settings, domains, "--port", "8080"), controller=fake_controller)

    assert code == 2
    assert fake_controller.started == []


def test_main_interrupt_stops_service_and_restores_handler(inputs, fake_controller):
    settings, domains = inputs
    before = signal.getsignal(signal.SIGTERM)

    def probe(domain, port):
        raise AssertionError("not reached")

    def interrupted_start(setting, port):
        raise RunInterrupted("SIGTERM")

    fake_controller.start = interrupted_start

    code = main(_argv(settings, domains, "--port", "8080"), controller=fake_controller, probe=probe)

    assert code == 130
    assert fake_controller.stop_calls >= 2
    assert signal.getsignal(signal.SIGTERM) is before


@pytest.mark.parametrize(
    "option, value",
    [
        ("--top-k", "-1"),
        ("--top-k", "0"),
        ("--concurrency", "0"),
        ("--concurrency", "-3"),
        ("--connect-timeout", "-1"),
        ("--max-time", "0"),
    ],
)
def test_main_rejects_non_positive_override_before_trials(inputs, fake_controller, option, value):
    settings, domains = inputs

    code = main(
        _argv(settings, domains, "--port", "8080", option, value),
        controller=fake_controller,
        probe=_probe_for(fake_controller),
    )

    assert code == 2
    assert fake_controller.started == []
    assert fake_controller.stop_calls == 0


def test_main_env_default_used_when_option_omitted(inputs, fake_controller, monkeypatch):
    settings, domains = inputs
    monkeypatch.setenv("TOP_K", "1")

    code = main(
        _argv(settings, domains, "--port", "8080", "--select", "1"),
        controller=fake_controller,
        probe=_probe_for(fake_controller),
    )

    # Only index 0 exists with TOP_K=1.
    assert code == 4


def test_main_usage_error_has_its_own_exit_code(inputs, capsys):
    settings, domains = inputs

    with pytest.raises(SystemExit) as excinfo:
        main(_argv(settings, domains, "--concurrency", "abc"))

    assert excinfo.value.code == USAGE_EXIT_CODE
    assert USAGE_EXIT_CODE not in (0, 2, 3, 4, 5, 130)
    assert "invalid int value" in capsys.readouterr().err
