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

import json
import logging
import shlex

from upgrade_testrunner.utils.utils import Utils

logger = logging.getLogger('testrunner')


class Kubectl:

    def __init__(self, conf):
        self.conf = conf
        self.binpath = conf.kubectl.binpath
        self.kubeconfig = conf.kubectl.kubeconfig
        self.workload_kind = conf.kubectl.workload_kind
        self.utils = Utils(self.conf)

    def run_kubectl(self, command):
        shell_cmd = f'{self.binpath} --kubeconfig={self.kubeconfig} {command}'
        try:
            return self.utils.runshellcommand(shell_cmd)
        except Exception as ex:
            raise Exception("Error executing cmd {}".format(shell_cmd)) from ex

    def get_json(self, command):
        return json.loads(self.run_kubectl(f"{command} -o json"))

    def list_replica_sets(self, namespace):
        """Returns the names of the replicated workloads in the namespace"""
        result = self.get_json(f"get {self.workload_kind} --namespace={namespace}")
        return [item["metadata"]["name"] for item in result.get("items", [])]

    def get_selector(self, namespace, name):
        """Returns the label selector of a replicated workload as a kubectl selector string.

        Replication controllers use a plain label map while replica sets use
        matchLabels and matchExpressions; all are accepted.
        """
        workload = self.get_json(f"get {self.workload_kind} {name} --namespace={namespace}")
        selector = label_selector(workload["spec"].get("selector") or {})
        if not selector:
            raise ValueError(f"{self.workload_kind} {name} has no label selector")
        return selector

    def count_ready_pods(self, namespace, name):
        """Returns the number of running and ready pods selected by the workload name"""
        selector = self.get_selector(namespace, name)
        pods = self.get_json(f"get pods --namespace={namespace} --selector={shlex.quote(selector)}")
        return len([pod for pod in pods.get("items", []) if pod_is_ready(pod)])

    def get_service(self, namespace, name):
        return self.get_json(f"get service {name} --namespace={namespace}")

    def count_ready_nodes(self):
        nodes = self.get_json("get nodes")
        return len([node for node in nodes.get("items", []) if node_is_ready(node)])


def _condition_is_true(obj, condition_type):
    for condition in obj.get("status", {}).get("conditions", []):
        if condition.get("type") == condition_type:
            return condition.get("status") == "True"
    return False


def pod_is_ready(pod):
    if pod["metadata"].get("deletionTimestamp"):
        return False
    return pod.get("status", {}).get("phase") == "Running" and _condition_is_true(pod, "Ready")


def node_is_ready(node):
    return _condition_is_true(node, "Ready")


def label_selector(selector):
    """Renders a workload selector in kubectl's selector syntax.

    A plain label map is rendered as equality requirements. A selector with
    matchLabels or matchExpressions is rendered with set-based requirements
    for the expressions, e.g. "app=web,tier in (backend,cache),!canary".
    """
    if "matchLabels" not in selector and "matchExpressions" not in selector:
        return ",".join(f"{k}={v}" for k, v in sorted(selector.items()))

    requirements = [f"{k}={v}" for k, v in sorted((selector.get("matchLabels") or {}).items())]
    for expression in selector.get("matchExpressions") or []:
        key, operator = expression["key"], expression["operator"]
        values = ",".join(expression.get("values") or [])
        if operator == "In":
            requirements.append(f"{key} in ({values})")
        elif operator == "NotIn":
            requirements.append(f"{key} notin ({values})")
        elif operator == "Exists":
            requirements.append(key)
        elif operator == "DoesNotExist":
            requirements.append(f"!{key}")
        else:
            raise ValueError(f"unsupported selector operator {operator} for key {key}")
    return ",".join(requirements)
