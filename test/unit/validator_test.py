import threading
import time

import pytest
from mock import Mock

from upgrade_testrunner.checks import (ConcurrentValidator, FailureReporter, ProbeOutcome, Target)
from upgrade_testrunner.checks.probe import HEALTHY
from upgrade_testrunner.errors import ValidationError


def _wait_for(predicate, timeout=5):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.005)


def test_failing_service_reports_one_failure(unhealthy_probe):
    reporter = FailureReporter()
    validator = ConcurrentValidator(probe=unhealthy_probe, reporter=reporter, period=0.001)

    run = validator.start(Target("10.0.0.1"), 0.001, 1, 0.02)
    _wait_for(lambda: run.failure is not None)
    # let the loop exhaust a few more budgets
    _wait_for(lambda: unhealthy_probe.probe.call_count > 50)
    run.stop()

    with pytest.raises(ValidationError) as excinfo:
        run.join()

    assert "10.0.0.1:80" in str(excinfo.value)
    assert len(reporter.failures) == 1
    failure = reporter.failures[0]
    assert failure.context == {"check": "availability", "target": "10.0.0.1:80"}
    assert failure.thread.startswith("validation-")
    assert not run.running


def test_healthy_service_joins_cleanly(healthy_probe):
    reporter = FailureReporter()
    run = ConcurrentValidator(probe=healthy_probe, reporter=reporter, period=0.001).start(
        Target("10.0.0.1"), 0.001, 1, 0.02)
    _wait_for(lambda: healthy_probe.probe.call_count > 3)

    run.stop()
    run.join()

    assert run.failure is None
    assert reporter.failures == []
    assert not run.running
    healthy_probe.probe.assert_called_with(Target("10.0.0.1"), timeout=1)


def test_transient_failures_are_absorbed():
    probe = Mock()
    outcomes = iter([ProbeOutcome("unreachable", "connection refused")] * 3)
    probe.probe.side_effect = lambda target, timeout=None: next(outcomes, ProbeOutcome(HEALTHY, "status 200"))

    run = ConcurrentValidator(probe=probe, period=0.001).start(Target("10.0.0.1"), 0.001, 1, 5)
    _wait_for(lambda: probe.probe.call_count > 5)
    run.stop()
    run.join()

    assert run.failure is None


def test_join_before_stop_is_rejected(healthy_probe):
    run = ConcurrentValidator(probe=healthy_probe, period=0.001).start(Target("10.0.0.1"), 0.001, 1, 0.02)

    with pytest.raises(RuntimeError):
        run.join()
    assert run.running

    run.stop()
    run.join()


def test_join_waits_for_in_flight_probe():
    probing = threading.Event()
    finished = []

    def slow_probe(target, timeout=None):
        probing.set()
        time.sleep(0.2)
        finished.append(target)
        return ProbeOutcome(HEALTHY, "status 200")

    probe = Mock()
    probe.probe.side_effect = slow_probe

    run = ConcurrentValidator(probe=probe, period=0.001).start(Target("10.0.0.1"), 0.001, 1, 0.02)
    assert probing.wait(5)
    run.stop()
    run.join()

    assert finished
    assert not run.running


def test_stop_is_idempotent(healthy_probe):
    run = ConcurrentValidator(probe=healthy_probe, period=0.001).start(Target("10.0.0.1"), 0.001, 1, 0.02)

    run.stop()
    run.stop()
    run.join()

    assert not run.running


def test_failure_reporter_is_thread_safe():
    reporter = FailureReporter()

    def report(n):
        for i in range(50):
            reporter.fail(f"failure {n}-{i}", check="test")

    threads = [threading.Thread(target=report, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(reporter.failures) == 200
