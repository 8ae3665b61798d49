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

from timeout_decorator import timeout

from upgrade_testrunner.platforms.platform import Platform
from upgrade_testrunner.utils import (step, Format)

logger = logging.getLogger('testrunner')


class GCE(Platform):
    def __init__(self, conf):
        super().__init__(conf)
        for key in ("project_id", "zone", "instance_group"):
            if not getattr(conf.gce, key):
                raise ValueError(Format.alert(f"gce.{key} must be set for the gce platform"))

        self.project = conf.gce.project_id
        self.zone = conf.gce.zone
        self.group = conf.gce.instance_group

    def _gcloud(self, command):
        return self.utils.runshellcommand(f"gcloud compute {command} --project={self.project}")

    @timeout(120)
    def get_node_template(self):
        output = self._gcloud(f"instance-groups managed describe {self.group} --zone={self.zone}"
                              " --format='value(instanceTemplate)'")
        # the template is reported as a full resource url
        template = output.strip().rsplit("/", 1)[-1]
        if not template:
            raise ValueError(f"instance group {self.group} reports no instance template")
        return template

    @step
    def rolling_update(self, template, per_node_timeout):
        """Roll the managed instance group to a new template"""
        logger.info(f"Rolling {self.group} to {template}; waiting at most {per_node_timeout}s per node")
        self._gcloud(f"instance-groups managed rolling-action start-update {self.group}"
                     f" --version=template={template} --max-surge=0 --max-unavailable=1"
                     f" --zone={self.zone}")
        group_timeout = per_node_timeout * max(self.conf.upgrade.num_nodes, 1)
        self._gcloud(f"instance-groups managed wait-until {self.group} --stable"
                     f" --timeout={group_timeout} --zone={self.zone}")

    @timeout(300)
    def delete_node_template(self, template):
        logger.info(f"Deleting node template {template}")
        self._gcloud(f"instance-templates delete {template} --quiet")
