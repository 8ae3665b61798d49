#!/usr/bin/env python
# -*- encoding: utf-8 -*-

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

"""
    Validates that a cluster's service stays available while the cluster is
    upgraded in place. Meant to run from CI or manually against a live cluster.
"""

import logging
import sys
from argparse import ArgumentParser

from upgrade_testrunner import __version__
from upgrade_testrunner import platforms
from upgrade_testrunner.checks import (ClusterValidator, HealthProbe, Target, WorkloadExpectation)
from upgrade_testrunner.checks.probe import probe_until_healthy
from upgrade_testrunner.kubectl import Kubectl
from upgrade_testrunner.upgrade import (MasterPush, MasterUpgrade, NodeUpgrade, UpgradeCoordinator)
from upgrade_testrunner.utils import (BaseConfig, Logger)

logger = logging.getLogger("testrunner")


def _expectation(options):
    conf = options.conf
    return WorkloadExpectation(
        namespace=options.namespace or conf.namespace,
        service_name=options.service,
        rc_name=options.rc,
        ingress=Target(options.ingress, conf.validation.port),
        replicas=options.replicas)


def _coordinator(conf, kubectl):
    return UpgradeCoordinator(conf, ClusterValidator.from_conf(conf, kubectl))


def _provider_supported(conf, command):
    if conf.provider != "gce":
        logger.info(f"Skipping {command}, which is not implemented for {conf.provider}")
        return False
    return True


def info(options):
    print(Kubectl(options.conf).run_kubectl("cluster-info"))


def probe(options):
    v = options.conf.validation
    target = Target(options.ingress, v.port)
    outcome = probe_until_healthy(HealthProbe(v.timeout), target, v.interval, v.budget)
    print(f"{target}: {outcome}")
    if not outcome.healthy:
        raise Exception(f"{target} is not healthy")


def validate(options):
    ClusterValidator.from_conf(options.conf, Kubectl(options.conf)).validate(_expectation(options))


def master_push(options):
    kubectl = Kubectl(options.conf)
    _coordinator(options.conf, kubectl).master_upgrade(_expectation(options), MasterPush())


def master_upgrade(options):
    if not _provider_supported(options.conf, "master upgrade"):
        return
    kubectl = Kubectl(options.conf)
    _coordinator(options.conf, kubectl).master_upgrade(_expectation(options), MasterUpgrade())


def node_upgrade(options):
    if not _provider_supported(options.conf, "node upgrade"):
        return
    kubectl = Kubectl(options.conf)
    platform = platforms.get_platform(options.conf)
    _coordinator(options.conf, kubectl).node_upgrade(_expectation(options), NodeUpgrade(platform, kubectl))


def cluster_upgrade(options):
    if not _provider_supported(options.conf, "cluster upgrade"):
        return
    kubectl = Kubectl(options.conf)
    platform = platforms.get_platform(options.conf)
    _coordinator(options.conf, kubectl).cluster_upgrade(
        _expectation(options), MasterUpgrade(), NodeUpgrade(platform, kubectl), platform)


def main(argv=None):
    help_str = """
    This script is meant to be run manually on test servers, developer desktops, or CI.
    Warning: the upgrade commands disrupt the target cluster.
    """
    parser = ArgumentParser(description=help_str)

    # Common parameters
    parser.add_argument("-v", "--vars", dest="yaml_path", default="vars.yaml",
                        help='path for the vars yaml file. Default is vars.yaml. eg: -v myconfig.yaml')
    parser.add_argument("-l", "--log-level", dest="log_level", default=None, help="log level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Sub commands
    commands = parser.add_subparsers(help="command", dest="command")
    commands.required = True

    cmd_info = commands.add_parser("info", help="cluster info")
    cmd_info.set_defaults(func=info)

    ingress_args = ArgumentParser(add_help=False)
    ingress_args.add_argument("-i", "--ingress", dest="ingress", required=True,
                              help="load balancer ingress IP or hostname of the service. eg: -i 10.0.0.1")

    cmd_probe = commands.add_parser("probe", parents=[ingress_args],
                                    help="check the service answers over http")
    cmd_probe.set_defaults(func=probe)

    # common parameters for commands checking the workload
    workload_args = ArgumentParser(add_help=False, parents=[ingress_args])
    workload_args.add_argument("-s", "--service", dest="service", required=True,
                               help="name of the service under test")
    workload_args.add_argument("-r", "--rc", dest="rc", required=True,
                               help="name of the replication controller backing the service")
    workload_args.add_argument("-n", "--replicas", dest="replicas", type=int, default=2,
                               help="number of pods expected to be running and ready. Default is 2")
    workload_args.add_argument("--namespace", dest="namespace", default=None,
                               help="namespace of the workload. Defaults to the configured namespace")

    cmd_validate = commands.add_parser("validate", parents=[workload_args],
                                       help="validate the workload once")
    cmd_validate.set_defaults(func=validate)

    cmd_master_push = commands.add_parser("master-push", parents=[workload_args],
                                          help="push local binaries to the master while validating")
    cmd_master_push.set_defaults(func=master_push)

    cmd_master_upgrade = commands.add_parser("master-upgrade", parents=[workload_args],
                                             help="upgrade the master while validating")
    cmd_master_upgrade.set_defaults(func=master_upgrade)

    cmd_node_upgrade = commands.add_parser("node-upgrade", parents=[workload_args],
                                           help="roll all nodes to a new template")
    cmd_node_upgrade.set_defaults(func=node_upgrade)

    cmd_cluster_upgrade = commands.add_parser("cluster-upgrade", parents=[workload_args],
                                              help="upgrade the master, then the nodes")
    cmd_cluster_upgrade.set_defaults(func=cluster_upgrade)

    options = parser.parse_args(argv)
    try:
        conf = BaseConfig(options.yaml_path)
        Logger.config_logger(conf, level=options.log_level)
        options.conf = conf
        options.func(options)
    except Exception as ex:
        logger.error("Exception executing testrunner command '{}': {}".format(
            options.command, ex), exc_info=True)
        sys.exit(255)


if __name__ == '__main__':
    main()
