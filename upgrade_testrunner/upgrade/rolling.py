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

import logging
from collections import namedtuple

from upgrade_testrunner.errors import RollingUpdateError
from upgrade_testrunner.utils import (poll, step)

logger = logging.getLogger('testrunner')


class FleetState(namedtuple("FleetState", ["desired", "ready"])):
    __slots__ = ()

    @property
    def converged(self):
        return self.ready == self.desired


class RollingNodeUpdater:
    STEP_TEMPLATE = "template"
    STEP_ROLLING_UPDATE = "rolling-update"
    STEP_NODES_READY = "nodes-ready"
    STEP_PODS_READY = "pods-ready"

    def __init__(self, conf, platform, kubectl, template_action):
        self.conf = conf
        self.platform = platform
        self.kubectl = kubectl
        self.template_action = template_action
        self.num_nodes = conf.upgrade.num_nodes

    def fleet_state(self):
        return FleetState(self.num_nodes, self.kubectl.count_ready_nodes())

    @step
    def run(self, expectation):
        """Replace the node template, roll every node and wait for the fleet and workload"""
        logger.info("Preparing node upgrade by creating new instance template")
        try:
            template = self.template_action()
        except Exception as ex:
            raise RollingUpdateError(self.STEP_TEMPLATE, None, ex) from ex

        timeouts = self.conf.upgrade
        logger.info(f"Performing a node upgrade to {template}; "
                    f"waiting at most {timeouts.per_node_timeout}s per node")
        try:
            self.platform.rolling_update(template, timeouts.per_node_timeout)
        except Exception as ex:
            raise RollingUpdateError(self.STEP_ROLLING_UPDATE, template, ex) from ex

        logger.info(f"Waiting up to {timeouts.node_ready_timeout}s for all nodes to be ready after the upgrade")
        self._wait(self.STEP_NODES_READY, template,
                   lambda: self.fleet_state().converged,
                   timeouts.node_ready_timeout,
                   f"{self.num_nodes} nodes ready")

        logger.info(f"Waiting up to {timeouts.pod_ready_timeout}s for all pods to be running and ready after the upgrade")
        self._wait(self.STEP_PODS_READY, template,
                   lambda: self.kubectl.count_ready_pods(
                       expectation.namespace, expectation.rc_name) == expectation.replicas,
                   timeouts.pod_ready_timeout,
                   f'{expectation.replicas} "{expectation.rc_name}" pods running and ready')

        return template

    def _wait(self, step_name, template, condition, timeout, description):
        try:
            poll(condition, timeout, self.conf.upgrade.poll_interval, description=description)
        except AssertionError as ex:
            raise RollingUpdateError(step_name, template, ex) from ex


def cleanup_node_template(platform, template_before):
    """Delete the node template that was replaced by a node upgrade.

    Returns True when the old template was deleted. Never raises: a template
    that cannot be read or deleted is only reported as a possible leak.
    """
    try:
        template_after = platform.get_node_template()
    except Exception as ex:
        logger.warning(f"Could not get node template post-upgrade ({ex}); may have leaked template {template_before}")
        return False

    if template_after == template_before:
        # the node upgrade did not replace anything, there is nothing to delete
        logger.info(f"Node template {template_before} is still in use; not cleaning up")
        return False

    # TODO: tell transient errors apart from "cannot delete, in use" and retry on the former
    try:
        platform.delete_node_template(template_before)
    except Exception as ex:
        logger.warning(f"Deleting node template {template_before} failed: {ex}")
        logger.warning(f"May have leaked {template_before}")
        return False
    return True
