import pytest

from byedpi_setup.errors import NoViableConfiguration, RunInterrupted
from byedpi_setup.jobs import TrialRunner
from byedpi_setup.network import ProbeOutcome
from byedpi_setup.ranking import rank

CODES = {
    "--a": {"x.com": 200, "y.com": 500},
    "--bb": {"x.com": 200, "y.com": 200},
}


def _probe_for(controller, codes=CODES):
    def probe(domain, port):
        assert controller.current is not None, "probe ran without an active service"
        return ProbeOutcome.from_code(domain, codes[controller.current][domain])

    return probe


def test_run_all_builds_trials_and_ranks(fake_controller):
    runner = TrialRunner(fake_controller, 8080, concurrency_limit=2, probe=_probe_for(fake_controller))

    trials = runner.run_all(["--a", "", "--bb"], ["x.com", "y.com", ""])

    assert [t.setting for t in trials] == ["--a", "--bb"]
    assert [t.success_rate for t in trials] == [50, 100]
    assert all(t.total_count == 2 for t in trials)
    assert [e.setting for e in rank(trials)] == ["--bb", "--a"]
    # one pre-run stop plus one per trial
    assert fake_controller.stop_calls == 3


def test_failed_service_contributes_no_trial(fake_controller):
    fake_controller.failing = {"--a"}
    runner = TrialRunner(fake_controller, 8080, probe=_probe_for(fake_controller))

    trials = runner.run_all(["--a", "--bb"], ["x.com", "y.com"])

    assert [t.setting for t in trials] == ["--bb"]
    assert fake_controller.started == ["--a", "--bb"]
    assert fake_controller.stop_calls == 3


def test_run_trial_returns_none_and_stops_on_start_failure(fake_controller):
    fake_controller.failing = {"--a"}
    runner = TrialRunner(fake_controller, 8080, probe=_probe_for(fake_controller))

    assert runner.run_trial("--a", ["x.com"]) is None
    assert fake_controller.stop_calls == 1


def test_run_trial_stops_service_when_interrupted(fake_controller, monkeypatch):
    def interrupted(*args, **kwargs):
        raise RunInterrupted("SIGTERM")

    monkeypatch.setattr("byedpi_setup.jobs.runner.dispatch", interrupted)
    runner = TrialRunner(fake_controller, 8080, probe=_probe_for(fake_controller))

    with pytest.raises(RunInterrupted):
        runner.run_trial("--a", ["x.com"])
    assert fake_controller.stop_calls == 1
    assert fake_controller.current is None


def test_duplicate_settings_are_trialed_independently(fake_controller):
    runner = TrialRunner(fake_controller, 8080, probe=_probe_for(fake_controller))

    trials = runner.run_all(["--bb", "--bb"], ["x.com"])

    assert len(trials) == 2


def test_empty_domain_list_leads_to_no_viable_configuration(fake_controller):
    runner = TrialRunner(fake_controller, 8080, probe=_probe_for(fake_controller))

    trials = runner.run_all(["--a", "--bb"], ["", "  "])

    assert [(t.total_count, t.success_rate) for t in trials] == [(0, 0), (0, 0)]
    with pytest.raises(NoViableConfiguration):
        rank(trials)


def test_runner_rejects_non_positive_concurrency(fake_controller):
    with pytest.raises(ValueError):
        TrialRunner(fake_controller, 8080, concurrency_limit=0)


def test_runner_rejects_non_positive_probe_deadline(fake_controller):
    with pytest.raises(ValueError):
        TrialRunner(fake_controller, 8080, probe_deadline=0)


def test_run_trial_hands_probe_deadline_to_dispatch(fake_controller, monkeypatch):
    seen = {}

    def recording_dispatch(domains, port, limit, *, probe, deadline):
        seen.update(port=port, limit=limit, deadline=deadline)
        return [ProbeOutcome.from_code(d, 200) for d in domains]

    monkeypatch.setattr("byedpi_setup.jobs.runner.dispatch", recording_dispatch)
    runner = TrialRunner(fake_controller, 1080, concurrency_limit=5, probe_deadline=1.5)

    trial = runner.run_trial("--bb", ["x.com"])

    assert trial.success_rate == 100
    assert seen == {"port": 1080, "limit": 5, "deadline": 1.5}
