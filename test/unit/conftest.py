import logging
import os

import pytest
from mock import Mock

from upgrade_testrunner.checks import (ProbeOutcome, Target, WorkloadExpectation)
from upgrade_testrunner.checks.probe import (HEALTHY, UNHEALTHY)
from upgrade_testrunner.utils import BaseConfig

VARS = """
workspace: {workspace}
repo_root: {workspace}/kubernetes
provider: gce
namespace: cluster-upgrade

gce:
  project_id: test-project
  zone: us-central1-b
  instance_group: e2e-minion-group

upgrade:
  num_nodes: 3
  per_node_timeout: 1
  node_ready_timeout: 0.3
  pod_ready_timeout: 0.3
  poll_interval: 0.01

validation:
  period: 0.005
  interval: 0.005
  timeout: 1
  budget: 0.03

log:
  file: {workspace}/testrunner.log
"""

CONFIG_ENV_PREFIXES = ("KUBECTL_", "GCE_", "UPGRADE_", "VALIDATION_", "LOG_")
CONFIG_ENV_KEYS = ("WORKSPACE", "REPO_ROOT", "PROVIDER", "NAMESPACE")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the environment of the machine running the tests out of the configuration"""
    for key in list(os.environ):
        if key in CONFIG_ENV_KEYS or key.startswith(CONFIG_ENV_PREFIXES):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def reset_logger():
    """Undo handlers and propagation set by Logger.config_logger"""
    logger = logging.getLogger("testrunner")
    handlers = list(logger.handlers)
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def vars_file(tmp_path):
    (tmp_path / "kubernetes").mkdir()
    path = tmp_path / "vars.yaml"
    path.write_text(VARS.format(workspace=tmp_path))
    return path


@pytest.fixture
def conf(vars_file):
    return BaseConfig(str(vars_file))


@pytest.fixture
def expectation():
    return WorkloadExpectation(
        namespace="cluster-upgrade",
        service_name="baz",
        rc_name="baz-rc",
        ingress=Target("10.0.0.1"),
        replicas=2)


@pytest.fixture
def healthy_probe():
    probe = Mock()
    probe.probe.return_value = ProbeOutcome(HEALTHY, "status 200")
    return probe


@pytest.fixture
def unhealthy_probe():
    probe = Mock()
    probe.probe.return_value = ProbeOutcome(UNHEALTHY, "status 500")
    return probe
