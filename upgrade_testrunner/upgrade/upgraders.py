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

from upgrade_testrunner.errors import (RollingUpdateError, UpgradeError)
from upgrade_testrunner.upgrade.rolling import RollingNodeUpdater
from upgrade_testrunner.utils import Utils

logger = logging.getLogger('testrunner')

UPGRADE_SCRIPT = "hack/e2e-internal/e2e-upgrade.sh"
PUSH_SCRIPT = "hack/e2e-internal/e2e-push.sh"

UpgradeContext = namedtuple("UpgradeContext", ["conf", "expectation"])


class Upgrader:
    """An upgrade action. Raises UpgradeError when it fails."""
    name = "upgrade"

    def perform(self, context):
        raise NotImplementedError


class ScriptUpgrader(Upgrader):
    script = None

    def args(self, conf):
        return []

    def perform(self, context):
        try:
            Utils(context.conf).run_script(self.script, *self.args(context.conf))
        except RuntimeError as ex:
            raise UpgradeError(f"{self.name} failed: {ex}") from ex


class MasterPush(ScriptUpgrader):
    name = "master push"
    script = PUSH_SCRIPT

    def args(self, conf):
        return ["-m"]


class MasterUpgrade(ScriptUpgrader):
    name = "master upgrade"
    script = UPGRADE_SCRIPT

    def args(self, conf):
        return ["-M", conf.upgrade.version]


class NodeUpgrade(Upgrader):
    name = "node upgrade"

    def __init__(self, platform, kubectl):
        self.platform = platform
        self.kubectl = kubectl

    def perform(self, context):
        updater = RollingNodeUpdater(context.conf, self.platform, self.kubectl,
                                     lambda: self.create_template(context.conf))
        try:
            updater.run(context.expectation)
        except RollingUpdateError:
            raise
        except Exception as ex:
            raise UpgradeError(f"{self.name} failed: {ex}") from ex

    def create_template(self, conf):
        """Creates the instance template new nodes are built from and returns its name"""
        stdout = Utils(conf).run_script(UPGRADE_SCRIPT, "-P", conf.upgrade.version)
        template = stdout.strip()
        if not template:
            raise UpgradeError(f"{UPGRADE_SCRIPT} -P did not report a template name")
        return template
