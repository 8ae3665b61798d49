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

from upgrade_testrunner.checks.probe import (HealthProbe, probe_until_healthy)
from upgrade_testrunner.errors import ClusterValidationError

logger = logging.getLogger('testrunner')


WorkloadExpectation = namedtuple(
    "WorkloadExpectation", ["namespace", "service_name", "rc_name", "ingress", "replicas"])


class ClusterValidator:
    """Point-in-time check that the workload under test is intact.

    Holds no state between calls; every check reads the live cluster and the
    first mismatch is raised as a ClusterValidationError.
    """

    def __init__(self, kubectl, probe=None, interval=5, budget=30):
        self.kubectl = kubectl
        self.probe = probe or HealthProbe()
        self.interval = interval
        self.budget = budget

    @classmethod
    def from_conf(cls, conf, kubectl, probe=None):
        return cls(kubectl, probe=probe or HealthProbe(conf.validation.timeout),
                   interval=conf.validation.interval, budget=conf.validation.budget)

    def validate(self, expectation):
        logger.info("Beginning cluster validation")
        self.check_replica_set(expectation)
        self.check_pods(expectation)
        self.check_service(expectation)
        self.check_reachable(expectation)
        logger.info("Cluster validation succeeded")

    def check_replica_set(self, expectation):
        try:
            names = self.kubectl.list_replica_sets(expectation.namespace)
        except Exception as ex:
            raise ClusterValidationError("replica-set", expectation.rc_name, None,
                                         f"error listing RCs: {ex}") from ex

        if len(names) != 1:
            raise ClusterValidationError("replica-set", 1, len(names),
                                         f"wanted 1 RC with name {expectation.rc_name}, got {len(names)}")
        if names[0] != expectation.rc_name:
            raise ClusterValidationError("replica-set", expectation.rc_name, names[0],
                                         f'wanted RC name "{expectation.rc_name}", got "{names[0]}"')

    def check_pods(self, expectation):
        want = expectation.replicas
        try:
            ready = self.kubectl.count_ready_pods(expectation.namespace, expectation.rc_name)
        except Exception as ex:
            raise ClusterValidationError("pods", want, None,
                                         f'failed to find {want} "{expectation.rc_name}" pods: {ex}') from ex

        if ready != want:
            raise ClusterValidationError("pods", want, ready,
                                         f'failed to find {want} "{expectation.rc_name}" pods: '
                                         f'wanted {want} running and ready, got {ready}')

    def check_service(self, expectation):
        want = expectation.service_name
        try:
            service = self.kubectl.get_service(expectation.namespace, want)
        except Exception as ex:
            raise ClusterValidationError("service", want, None,
                                         f"error getting service {want}: {ex}") from ex

        got = service.get("metadata", {}).get("name")
        if got != want:
            raise ClusterValidationError("service", want, got,
                                         f'wanted service name "{want}", got "{got}"')

    def check_reachable(self, expectation):
        outcome = probe_until_healthy(self.probe, expectation.ingress, self.interval, self.budget)
        if not outcome.healthy:
            raise ClusterValidationError("ingress", "healthy", str(outcome),
                                         f"load balancer {expectation.ingress.url} not reachable: {outcome}")
