# Copyright (c) 2019 SUSE LLC.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import contextlib
import logging
import threading

from upgrade_testrunner.checks import ConcurrentValidator
from upgrade_testrunner.errors import (ClusterValidationError, RollingUpdateError,
                                       UpgradePhaseError, ValidationError)
from upgrade_testrunner.upgrade.rolling import cleanup_node_template
from upgrade_testrunner.upgrade.upgraders import UpgradeContext
from upgrade_testrunner.utils import (step, timed)

logger = logging.getLogger('testrunner')


class State:
    IDLE = "idle"
    UPGRADING = "upgrading"
    JOINED = "joined"
    POST_VALIDATED = "post-validated"


class Phase:
    PRE_VALIDATE = "pre-validate"
    DURING_UPGRADE = "during-upgrade"
    POST_VALIDATE = "post-validate"
    ROLLING_UPDATE = "rolling-update"


class UpgradeCoordinator:
    """Runs upgrade cycles against one cluster, one cycle at a time.

    A master cycle validates the cluster, runs the upgrade action while a
    ConcurrentValidator probes the service, joins the validator and validates
    the cluster again. A node cycle validates, rolls the node pool and
    validates again. Fatal failures are raised as UpgradePhaseError.
    """

    def __init__(self, conf, cluster_validator, validator=None):
        self.conf = conf
        self.cluster_validator = cluster_validator
        self.validator = validator or ConcurrentValidator(period=conf.validation.period)
        self.state = State.IDLE
        self._lock = threading.Lock()

    @contextlib.contextmanager
    def _cycle(self):
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("an upgrade cycle is already running against this cluster")
        try:
            yield
        finally:
            self.state = State.IDLE
            self._lock.release()

    def _validate(self, expectation, phase):
        try:
            self.cluster_validator.validate(expectation)
        except ClusterValidationError as ex:
            raise UpgradePhaseError(phase, ex) from ex

    @step
    def master_upgrade(self, expectation, upgrader):
        """Upgrade the master while checking the service stays reachable"""
        with self._cycle():
            logger.info(f"Validating cluster before {upgrader.name}")
            self._validate(expectation, Phase.PRE_VALIDATE)
            self._run_validated(expectation, upgrader)
            logger.info(f"Validating cluster after {upgrader.name}")
            self._validate(expectation, Phase.POST_VALIDATE)
            self.state = State.POST_VALIDATED

    def _run_validated(self, expectation, upgrader):
        v = self.conf.validation
        run = self.validator.start(expectation.ingress, v.interval, v.timeout, v.budget)
        self.state = State.UPGRADING

        action_failed = True
        try:
            logger.info(f"Starting {upgrader.name}")
            with timed(upgrader.name):
                upgrader.perform(UpgradeContext(self.conf, expectation))
            action_failed = False
        except Exception as ex:
            raise UpgradePhaseError(Phase.DURING_UPGRADE, ex) from ex
        finally:
            # always stop before join, also when the action failed
            run.stop()
            try:
                run.join()
            except ValidationError as ex:
                if not action_failed:
                    raise UpgradePhaseError(Phase.DURING_UPGRADE, ex) from ex
                logger.error(f"Service validation also failed during the failed {upgrader.name}: {ex}")
            finally:
                self.state = State.JOINED

        logger.info(f"{upgrader.name} complete")

    @step
    def node_upgrade(self, expectation, upgrader):
        """Roll the node pool and wait for the fleet and workload to converge"""
        with self._cycle():
            logger.info(f"Validating cluster before {upgrader.name}")
            self._validate(expectation, Phase.PRE_VALIDATE)

            self.state = State.UPGRADING
            logger.info(f"Starting {upgrader.name}")
            try:
                with timed(upgrader.name):
                    upgrader.perform(UpgradeContext(self.conf, expectation))
            except RollingUpdateError as ex:
                raise UpgradePhaseError(f"{Phase.ROLLING_UPDATE}:{ex.step}", ex) from ex
            except Exception as ex:
                raise UpgradePhaseError(Phase.DURING_UPGRADE, ex) from ex
            self.state = State.JOINED
            logger.info(f"{upgrader.name} complete")

            logger.info(f"Validating cluster after {upgrader.name}")
            self._validate(expectation, Phase.POST_VALIDATE)
            self.state = State.POST_VALIDATED

    @step
    def cluster_upgrade(self, expectation, master_upgrader, node_upgrader, platform):
        """Upgrade the master, then the nodes, then clean up the old node template"""
        logger.info("Getting the node template before the upgrade")
        try:
            template_before = platform.get_node_template()
        except Exception as ex:
            raise UpgradePhaseError(Phase.PRE_VALIDATE, ex) from ex

        try:
            self.master_upgrade(expectation, master_upgrader)
            self.node_upgrade(expectation, node_upgrader)
        finally:
            logger.info("Cleaning up any unused node templates")
            cleanup_node_template(platform, template_before)
