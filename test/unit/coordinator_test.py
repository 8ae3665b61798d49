import time

import pytest
from mock import Mock

from upgrade_testrunner.checks import ConcurrentValidator
from upgrade_testrunner.errors import (ClusterValidationError, RollingUpdateError, UpgradeError,
                                       UpgradePhaseError, ValidationError)
from upgrade_testrunner.upgrade import (Phase, State, UpgradeCoordinator)


class RecordingValidator(ConcurrentValidator):
    """Keeps the runs it starts so tests can inspect them afterwards"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.runs = []

    def start(self, *args):
        run = super().start(*args)
        self.runs.append(run)
        return run


def _upgrader(name="master upgrade", error=None):
    upgrader = Mock()
    upgrader.name = name
    if error is not None:
        upgrader.perform.side_effect = error
    return upgrader


def _mock_run(events, join_error=None):
    run = Mock()
    run.stop.side_effect = lambda: events.append("stop")

    def join():
        events.append("join")
        if join_error is not None:
            raise join_error

    run.join.side_effect = join
    return run


@pytest.fixture
def cluster_validator():
    return Mock()


def test_master_upgrade(conf, cluster_validator, healthy_probe, expectation):
    validator = RecordingValidator(probe=healthy_probe, period=0.001)
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)
    upgrader = _upgrader()

    coordinator.master_upgrade(expectation, upgrader)

    assert cluster_validator.validate.call_count == 2
    upgrader.perform.assert_called_once()
    context = upgrader.perform.call_args[0][0]
    assert context.conf is conf
    assert context.expectation == expectation
    run = validator.runs[0]
    assert run.target == expectation.ingress
    assert run.failure is None
    assert not run.running
    assert coordinator.state == State.IDLE


def test_validation_window_spans_action(conf, cluster_validator, expectation):
    events = []
    validator = Mock()
    validator.start.side_effect = lambda *args: events.append("start") or _mock_run(events)
    upgrader = _upgrader()
    upgrader.perform.side_effect = lambda context: events.append("perform")
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    coordinator.master_upgrade(expectation, upgrader)

    assert events == ["start", "perform", "stop", "join"]
    v = conf.validation
    validator.start.assert_called_once_with(expectation.ingress, v.interval, v.timeout, v.budget)


def test_action_error_stops_and_joins_validator(conf, cluster_validator, expectation):
    events = []
    validator = Mock()
    validator.start.return_value = _mock_run(events)
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.master_upgrade(expectation, _upgrader(error=UpgradeError("e2e-upgrade.sh failed")))

    assert events == ["stop", "join"]
    assert excinfo.value.phase == Phase.DURING_UPGRADE
    assert isinstance(excinfo.value.cause, UpgradeError)
    # only the pre-validation ran
    assert cluster_validator.validate.call_count == 1
    assert coordinator.state == State.IDLE


def test_action_error_leaves_no_running_validator(conf, cluster_validator, healthy_probe, expectation):
    validator = RecordingValidator(probe=healthy_probe, period=0.001)
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    with pytest.raises(UpgradePhaseError):
        coordinator.master_upgrade(expectation, _upgrader(error=UpgradeError("boom")))

    assert not validator.runs[0].running


def test_validation_failure_fails_upgrade(conf, cluster_validator, unhealthy_probe, expectation):
    validator = RecordingValidator(probe=unhealthy_probe, period=0.001)
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)
    upgrader = _upgrader()
    # keep the action running until the validator has given up on the service
    upgrader.perform.side_effect = lambda context: _wait_for_failure(validator)

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.master_upgrade(expectation, upgrader)

    assert excinfo.value.phase == Phase.DURING_UPGRADE
    assert isinstance(excinfo.value.cause, ValidationError)
    assert cluster_validator.validate.call_count == 1
    assert len(validator.reporter.failures) == 1


def _wait_for_failure(validator):
    deadline = time.monotonic() + 5
    while validator.runs[0].failure is None and time.monotonic() < deadline:
        time.sleep(0.005)


def test_action_error_wins_over_validation_failure(conf, cluster_validator, expectation):
    events = []
    validator = Mock()
    validator.start.return_value = _mock_run(events, join_error=ValidationError("service down"))
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.master_upgrade(expectation, _upgrader(error=UpgradeError("e2e-push.sh failed")))

    assert isinstance(excinfo.value.cause, UpgradeError)
    assert events == ["stop", "join"]


def test_pre_validation_failure(conf, cluster_validator, expectation):
    cluster_validator.validate.side_effect = ClusterValidationError(
        "replica-set", 1, 0, "wanted 1 RC with name baz-rc, got 0")
    validator = Mock()
    upgrader = _upgrader()
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.master_upgrade(expectation, upgrader)

    assert excinfo.value.phase == Phase.PRE_VALIDATE
    assert "wanted 1 RC with name baz-rc, got 0" in str(excinfo.value)
    validator.start.assert_not_called()
    upgrader.perform.assert_not_called()


def test_post_validation_failure(conf, cluster_validator, expectation):
    cluster_validator.validate.side_effect = [
        None, ClusterValidationError("pods", 2, 1, "failed to find 2 \"baz-rc\" pods")]
    events = []
    validator = Mock()
    validator.start.return_value = _mock_run(events)
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.master_upgrade(expectation, _upgrader())

    assert excinfo.value.phase == Phase.POST_VALIDATE
    assert excinfo.value.cause.check == "pods"


def test_node_upgrade(conf, cluster_validator, expectation):
    validator = Mock()
    upgrader = _upgrader("node upgrade")
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    coordinator.node_upgrade(expectation, upgrader)

    assert cluster_validator.validate.call_count == 2
    upgrader.perform.assert_called_once()
    validator.start.assert_not_called()
    assert coordinator.state == State.IDLE


def test_node_upgrade_rolling_failure(conf, cluster_validator, expectation):
    error = RollingUpdateError("nodes-ready", "tmpl-B", AssertionError("timed out"))
    coordinator = UpgradeCoordinator(conf, cluster_validator, Mock())

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.node_upgrade(expectation, _upgrader("node upgrade", error=error))

    assert excinfo.value.phase == "rolling-update:nodes-ready"
    assert cluster_validator.validate.call_count == 1


def test_cycles_do_not_overlap(conf, cluster_validator, healthy_probe, expectation):
    validator = RecordingValidator(probe=healthy_probe, period=0.001)
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)
    upgrader = _upgrader()
    upgrader.perform.side_effect = lambda context: coordinator.node_upgrade(expectation, _upgrader("node upgrade"))

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.master_upgrade(expectation, upgrader)

    assert isinstance(excinfo.value.cause, RuntimeError)
    assert not validator.runs[0].running


def test_cluster_upgrade(conf, cluster_validator, expectation):
    platform = Mock()
    platform.get_node_template.side_effect = ["tmpl-A", "tmpl-B"]
    events = []
    validator = Mock()
    validator.start.return_value = _mock_run(events)
    master, node = _upgrader(), _upgrader("node upgrade")
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    coordinator.cluster_upgrade(expectation, master, node, platform)

    master.perform.assert_called_once()
    node.perform.assert_called_once()
    assert cluster_validator.validate.call_count == 4
    platform.delete_node_template.assert_called_once_with("tmpl-A")


def test_cluster_upgrade_failure_keeps_template(conf, cluster_validator, expectation):
    platform = Mock()
    platform.get_node_template.return_value = "tmpl-A"
    events = []
    validator = Mock()
    validator.start.return_value = _mock_run(events)
    node = _upgrader("node upgrade")
    coordinator = UpgradeCoordinator(conf, cluster_validator, validator)

    with pytest.raises(UpgradePhaseError):
        coordinator.cluster_upgrade(expectation, _upgrader(error=UpgradeError("boom")), node, platform)

    node.perform.assert_not_called()
    assert platform.get_node_template.call_count == 2
    platform.delete_node_template.assert_not_called()


def test_cluster_upgrade_template_unreadable(conf, cluster_validator, expectation):
    platform = Mock()
    platform.get_node_template.side_effect = RuntimeError("gcloud: permission denied")
    master, node = _upgrader(), _upgrader("node upgrade")
    coordinator = UpgradeCoordinator(conf, cluster_validator, Mock())

    with pytest.raises(UpgradePhaseError) as excinfo:
        coordinator.cluster_upgrade(expectation, master, node, platform)

    assert excinfo.value.phase == Phase.PRE_VALIDATE
    assert isinstance(excinfo.value.cause, RuntimeError)
    master.perform.assert_not_called()
    platform.delete_node_template.assert_not_called()
    assert coordinator.state == State.IDLE
